import pytest

import grading
from errors import RequiredFieldError, ValidationError
from school_config import set_term


@pytest.mark.parametrize("total, expected", [
    (100, "A"),
    (70, "A"),
    (69.99, "B"),
    (60, "B"),
    (59.99, "C"),
    (50, "C"),
    (49.99, "D"),
    (45, "D"),
    (44.99, "F"),
    (0, "F"),
])
def test_letter_grade_boundaries(total, expected):
    assert grading.letter_grade(total) == expected
    assert grading.compute(total, 0, 0).grade == expected


def test_compute_sums_components():
    result = grading.compute(15, 8, 52)
    assert result.total == 75
    assert result.grade == "A"


def test_compute_coerces_bad_input_to_zero():
    result = grading.compute("abc", None, "12.5")
    assert result.total == 12.5
    assert result.grade == "F"
    assert grading.parse_score(float("nan")) == 0.0


@pytest.mark.parametrize("value", ["inf", "-inf", float("inf"), 1e999, 10 ** 400])
def test_non_finite_component_counts_as_zero(value):
    assert grading.parse_score(value) == 0.0


def test_structured_save_with_infinite_components(store):
    saved = grading.upsert_structured_grade(store, {"id": "s1", "name": "Ngozi"}, "JSS 1", "Physics",
                                            {"test": "inf", "assignment": "-inf", "exam": 10})
    assert saved["test"] == 0
    assert saved["assignment"] == 0
    assert saved["total"] == 10
    assert saved["grade"] == "F"


def test_scores_have_no_upper_bound():
    result = grading.compute(50, 50, 200)
    assert result.total == 300
    assert result.grade == "A"


def test_gradebook_entry_recomputes_total():
    book = grading.StructuredGradebook("JSS 1", "Mathematics")
    book.enter("s1", "test", "18")
    entry = book.enter("s1", "exam", 40)
    assert entry == {"test": 18.0, "assignment": 0.0, "exam": 40.0, "total": 58.0, "grade": "C"}


def test_gradebook_rejects_unknown_component():
    book = grading.StructuredGradebook("JSS 1", "Mathematics")
    with pytest.raises(ValidationError):
        book.enter("s1", "project", 10)


def test_gradebook_save_without_entry_is_noop(store):
    book = grading.StructuredGradebook("JSS 1", "Mathematics")
    assert book.save(store, {"id": "s1", "name": "Ngozi"}) is None
    assert store.count_documents("grades") == 0


def test_structured_save_is_idempotent(store):
    student = {"id": "s1", "name": "Ngozi"}
    book = grading.StructuredGradebook("JSS 1", "Mathematics")
    book.enter("s1", "test", 20)
    book.enter("s1", "assignment", 10)
    book.enter("s1", "exam", 40)

    book.save(store, student)
    book.save(store, student)

    docs = store.get_documents("grades")
    assert len(docs) == 1
    doc = docs[0]
    assert doc["id"] == "s1_Mathematics"
    assert doc["class"] == "JSS 1"
    assert doc["total"] == 70
    assert doc["grade"] == "A"


def test_structured_save_replaces_previous_components(store):
    student = {"id": "s1", "name": "Ngozi"}
    grading.upsert_structured_grade(store, student, "JSS 1", "English", {"test": 20, "exam": 50})
    grading.upsert_structured_grade(store, student, "JSS 1", "English", {"exam": 30})

    doc = store.get_document("grades", "s1_English")
    assert doc["test"] == 0
    assert doc["total"] == 30
    assert doc["grade"] == "F"


def test_freeform_save_appends(store):
    student = {"id": "s1", "name": "Ngozi"}
    grading.append_freeform_grade(store, student, "Physics", "80")
    grading.append_freeform_grade(store, student, "Physics", "80")
    assert store.count_documents("grades", {"studentId": "s1", "subject": "Physics"}) == 2


def test_freeform_defaults(store):
    saved = grading.append_freeform_grade(store, {"id": "s1", "name": "Ngozi"}, "Physics", 0, feedback="   ")
    assert saved["score"] == 0
    assert saved["feedback"] == grading.NO_FEEDBACK
    assert saved["teacherName"] == "Teacher"
    assert saved["term"] == "First Term"


def test_freeform_uses_configured_term(store):
    set_term(store, "Second Term 2025/2026")
    saved = grading.append_freeform_grade(store, {"id": "s1"}, "Physics", 55, teacher_name="Mr Bello")
    assert saved["term"] == "Second Term 2025/2026"
    assert saved["teacherName"] == "Mr Bello"


@pytest.mark.parametrize("score", [None, "", "  "])
def test_freeform_requires_score(store, score):
    with pytest.raises(RequiredFieldError):
        grading.append_freeform_grade(store, {"id": "s1"}, "Physics", score)
    assert store.count_documents("grades") == 0


@pytest.mark.parametrize("score", ["excellent", "nan", "inf", "-inf", 1e999, 10 ** 400])
def test_freeform_rejects_unusable_score(store, score):
    with pytest.raises(ValidationError) as exc:
        grading.append_freeform_grade(store, {"id": "s1"}, "Physics", score)
    assert exc.value.error_code == "INVALID_SCORE"
    assert store.count_documents("grades") == 0


def test_student_results_only_include_dated_records(store):
    student = {"id": "s1", "name": "Ngozi"}
    grading.upsert_structured_grade(store, student, "JSS 1", "English", {"exam": 60})
    first = grading.append_freeform_grade(store, student, "Physics", 40)
    second = grading.append_freeform_grade(store, student, "Biology", 90)
    grading.append_freeform_grade(store, {"id": "s2"}, "Biology", 10)

    results = grading.list_student_results(store, "s1")
    assert {r["id"] for r in results} == {first["id"], second["id"]}
    assert results[0]["date"] >= results[1]["date"]
    assert grading.list_student_results(store, None) == []


def test_remark_requires_message(store):
    with pytest.raises(RequiredFieldError):
        grading.send_remark(store, {"id": "s1", "name": "Ngozi"}, "  ")


def test_remark_is_unread(store):
    saved = grading.send_remark(store, {"id": "s1", "name": "Ngozi"}, "See me after class", "Mr Bello")
    assert saved["id"].startswith("s1_")
    assert saved["read"] is False
    assert saved["teacherName"] == "Mr Bello"
