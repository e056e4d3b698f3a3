from typing import Callable, List

from app_logger import get_logger
from database import DocumentStore
from schemas import SchoolConfig

logger = get_logger(__name__)

SETTINGS = "settings"
CONFIG_ID = "schoolConfig"


def load_config(store: DocumentStore) -> SchoolConfig:
    doc = store.get_document(SETTINGS, CONFIG_ID)
    if not doc:
        return SchoolConfig()
    doc.pop("id", None)
    return SchoolConfig(**doc)


def save_config(store: DocumentStore, config: SchoolConfig) -> SchoolConfig:
    store.set_document(SETTINGS, CONFIG_ID, config.model_dump())
    return config


def current_term(store: DocumentStore, fallback: str) -> str:
    doc = store.get_document(SETTINGS, CONFIG_ID)
    return (doc or {}).get("currentTerm") or fallback


def _edit_list(store: DocumentStore, field: str, change: Callable[[List[str]], List[str]]) -> SchoolConfig:
    config = load_config(store)
    before = getattr(config, field)
    after = change(list(before))
    if after == before:
        return config
    setattr(config, field, after)
    logger.info(f"School config {field} updated: {after}")
    return save_config(store, config)


def add_class(store: DocumentStore, name: str) -> SchoolConfig:
    name = (name or "").strip()
    return _edit_list(store, "classes", lambda items: items if not name or name in items else items + [name])


def remove_class(store: DocumentStore, name: str) -> SchoolConfig:
    return _edit_list(store, "classes", lambda items: [c for c in items if c != name])


def add_subject(store: DocumentStore, name: str) -> SchoolConfig:
    name = (name or "").strip()
    return _edit_list(store, "subjects", lambda items: items if not name or name in items else items + [name])


def remove_subject(store: DocumentStore, name: str) -> SchoolConfig:
    return _edit_list(store, "subjects", lambda items: [s for s in items if s != name])


def set_term(store: DocumentStore, term: str) -> SchoolConfig:
    # A new term starts a fresh page for attendance and grades; old records keep their term
    config = load_config(store)
    config.currentTerm = term
    logger.info(f"Current term set to {term}")
    return save_config(store, config)
