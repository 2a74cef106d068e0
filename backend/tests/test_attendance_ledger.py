"""
Tests du registre des présences : contraintes d'unicité posées par la base,
ordre de lecture et comptage.
"""

from datetime import timedelta

import pytest

from app.models.attendance import ENTRY_MANUAL, ENTRY_SELF_SERVICE, AttendanceRecord
from app.services import attendance_ledger
from app.services.attendance_ledger import DuplicateAttendanceError

from conftest import NOW


def make_record(lecture_id, student_id="S1", session_id="sess-1", entry_type=ENTRY_SELF_SERVICE, timestamp=NOW):
    return AttendanceRecord(
        lecture_id=lecture_id,
        student_id=student_id,
        student_name=f"Étudiant {student_id}",
        group_number="G1",
        timestamp=timestamp,
        session_id=session_id,
        entry_type=entry_type,
    )


class TestInsert:
    def test_insertion(self, db, make_lecture):
        lecture = make_lecture()
        record = attendance_ledger.insert_attendance(db, make_record(lecture.id))
        assert record.id is not None

    def test_meme_etudiant_refuse_par_la_base(self, db, make_lecture):
        lecture = make_lecture()
        attendance_ledger.insert_attendance(db, make_record(lecture.id, session_id="a"))

        with pytest.raises(DuplicateAttendanceError):
            attendance_ledger.insert_attendance(db, make_record(lecture.id, session_id="b"))
        assert attendance_ledger.count_by_lecture(db, lecture.id) == 1

    def test_meme_session_libre_service_refusee_par_la_base(self, db, make_lecture):
        lecture = make_lecture()
        attendance_ledger.insert_attendance(db, make_record(lecture.id, "S1", "sess-1"))

        with pytest.raises(DuplicateAttendanceError):
            attendance_ledger.insert_attendance(db, make_record(lecture.id, "S2", "sess-1"))

    def test_meme_sentinelle_manuelle_autorisee(self, db, make_lecture):
        lecture = make_lecture()
        attendance_ledger.insert_attendance(db, make_record(lecture.id, "S1", "manual_7", ENTRY_MANUAL))
        attendance_ledger.insert_attendance(db, make_record(lecture.id, "S2", "manual_7", ENTRY_MANUAL))
        assert attendance_ledger.count_by_lecture(db, lecture.id) == 2

    def test_meme_etudiant_sur_deux_cours(self, db, make_lecture):
        a = make_lecture(title="A")
        b = make_lecture(title="B")
        attendance_ledger.insert_attendance(db, make_record(a.id))
        attendance_ledger.insert_attendance(db, make_record(b.id))
        assert attendance_ledger.count_by_lecture(db, a.id) == 1
        assert attendance_ledger.count_by_lecture(db, b.id) == 1


class TestRead:
    def test_liste_par_ordre_chronologique(self, db, make_lecture):
        lecture = make_lecture()
        for i, student in enumerate(["S3", "S1", "S2"]):
            attendance_ledger.insert_attendance(
                db,
                make_record(lecture.id, student, f"sess-{student}", timestamp=NOW + timedelta(minutes=3 - i)),
            )

        rows = attendance_ledger.list_by_lecture(db, lecture.id)
        assert [r.student_id for r in rows] == ["S2", "S1", "S3"]

    def test_liste_cours_vide(self, db, make_lecture):
        lecture = make_lecture()
        assert attendance_ledger.list_by_lecture(db, lecture.id) == []
        assert attendance_ledger.count_by_lecture(db, lecture.id) == 0

    def test_find_by_session_ignore_les_saisies_manuelles(self, db, make_lecture):
        lecture = make_lecture()
        attendance_ledger.insert_attendance(db, make_record(lecture.id, "S1", "manual_7", ENTRY_MANUAL))
        assert attendance_ledger.find_by_session(db, lecture.id, "manual_7") is None

    def test_find_by_student(self, db, make_lecture):
        lecture = make_lecture()
        attendance_ledger.insert_attendance(db, make_record(lecture.id, "S1"))
        assert attendance_ledger.find_by_student(db, lecture.id, "S1").student_id == "S1"
        assert attendance_ledger.find_by_student(db, lecture.id, "S2") is None
