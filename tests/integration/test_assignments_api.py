import pytest
from datetime import datetime, timedelta
from fastapi import status

from models import ActivityLog, ActivityType, Assignment, AssignmentType, EvaluationType, Question


class TestCreateAssignment:
    """POST /api/assignments"""

    def test_create_standard_assignment(self, client, seed, auth_headers, sample_assignment_payload):
        response = client.post(
            "/api/assignments", json=sample_assignment_payload, headers=auth_headers(seed.teacher)
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["topic"] == "Irregular verbs"
        assert data["isActive"] is True
        assert data["publishedAt"] is not None
        assert data["teacher"]["username"] == "teacher"
        assert data["language"]["code"] == "en-US"
        assert [question["textQuestion"] for question in data["questions"]] == ["Past of go?", "Past of see?"]
        assert [item["id"] for item in data["classes"]] == [seed.class_a.id]
        assert [item["id"] for item in data["students"]] == [seed.carol.id]
        assert data["totalStudentsInScope"] == 3
        assert data["evaluationSettings"]["customPrompt"] == "Be kind"

    def test_creation_is_logged(self, client, test_db, seed, auth_headers, sample_assignment_payload):
        response = client.post(
            "/api/assignments", json=sample_assignment_payload, headers=auth_headers(seed.teacher)
        )

        assignment_id = response.json()["data"]["id"]
        log = test_db.query(ActivityLog).filter(ActivityLog.assignment_id == assignment_id).one()
        assert log.type == ActivityType.ASSIGNMENT_CREATED
        assert log.user_id == seed.teacher.id

    def test_future_schedule_creates_inactive_assignment(
        self, client, seed, auth_headers, sample_assignment_payload
    ):
        sample_assignment_payload["scheduledPublishAt"] = (datetime.utcnow() + timedelta(days=1)).isoformat()

        response = client.post(
            "/api/assignments", json=sample_assignment_payload, headers=auth_headers(seed.teacher)
        )

        data = response.json()["data"]
        assert data["isActive"] is False
        assert data["isScheduled"] is True

    def test_video_creation_type(self, client, test_db, seed, auth_headers):
        payload = {
            "creationType": "video",
            "topic": "Ocean life",
            "videoUrl": "https://www.youtube.com/watch?v=abc123",
            "classIds": [seed.class_a.id],
            "studentIds": [seed.carol.id],
            "assignToEntireClass": True,
            "questions": [{"text": "What lives in the ocean?", "answer": "Fish"}],
            "rules": ["Answer in full sentences"],
        }

        response = client.post("/api/assignments", json=payload, headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["type"] == "CLASS"
        assert data["videoUrl"] == payload["videoUrl"]
        assert data["students"] == []
        assert data["evaluationSettings"]["type"] == "VIDEO"
        assert data["evaluationSettings"]["rules"] == ["Answer in full sentences"]
        assert data["evaluationSettings"]["feedbackSettings"] == {
            "detailedFeedback": True,
            "encouragementEnabled": True,
        }

    def test_video_requires_valid_url(self, client, seed, auth_headers):
        payload = {
            "creationType": "video",
            "topic": "Broken",
            "videoUrl": "not a url",
            "assignToEntireClass": True,
            "questions": [{"text": "Q", "answer": "A"}],
        }

        response = client.post("/api/assignments", json=payload, headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Validation failed"
        assert any(detail["field"] == "videoUrl" for detail in body["details"])

    def test_missing_topic_is_rejected(self, client, seed, auth_headers, sample_assignment_payload):
        sample_assignment_payload["topic"] = "   "

        response = client.post(
            "/api/assignments", json=sample_assignment_payload, headers=auth_headers(seed.teacher)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unknown_language_is_rejected(self, client, seed, auth_headers, sample_assignment_payload):
        sample_assignment_payload["languageId"] = "missing-language"

        response = client.post(
            "/api/assignments", json=sample_assignment_payload, headers=auth_headers(seed.teacher)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Language not found"

    def test_unknown_class_is_rejected(self, client, seed, auth_headers, sample_assignment_payload):
        sample_assignment_payload["classIds"] = ["missing-class"]

        response = client.post(
            "/api/assignments", json=sample_assignment_payload, headers=auth_headers(seed.teacher)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"] == {"classIds": ["missing-class"]}

    def test_students_cannot_create(self, client, seed, auth_headers, sample_assignment_payload):
        response = client.post(
            "/api/assignments", json=sample_assignment_payload, headers=auth_headers(seed.alice)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["code"] == "FORBIDDEN"

    def test_anonymous_cannot_create(self, client, seed, sample_assignment_payload):
        response = client.post("/api/assignments", json=sample_assignment_payload)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"success": False, "error": "Authentication required", "code": "UNAUTHORIZED"}


class TestVariantEndpoints:
    def test_reading_assignment_uses_passage_as_question(self, client, seed, auth_headers):
        payload = {
            "topic": "The fox",
            "context": "The quick brown fox jumps over the lazy dog.",
            "classIds": [seed.class_a.id],
        }

        response = client.post("/api/assignments/reading", json=payload, headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["context"] == payload["context"]
        assert data["language"]["id"] == seed.english.id
        assert data["evaluationSettings"]["type"] == "READING"
        assert data["languageAssessmentType"] == "SCRIPTED_US"
        assert [question["textQuestion"] for question in data["questions"]] == [payload["context"]]

    def test_reading_requires_english(self, client, test_db, seed, auth_headers):
        test_db.delete(seed.english)
        test_db.commit()

        response = client.post(
            "/api/assignments/reading",
            json={"topic": "No English", "context": "Text", "classIds": [seed.class_a.id]},
            headers=auth_headers(seed.teacher),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "English language not found" in response.json()["error"]

    def test_pronunciation_assignment(self, client, seed, auth_headers):
        payload = {
            "topic": "Tongue twisters",
            "accent": "uk",
            "assignToEntireClass": False,
            "studentIds": [seed.alice.id],
            "questions": [{"title": "Sea shells", "text": "She sells sea shells by the sea shore."}],
        }

        response = client.post("/api/assignments/pronunciation", json=payload, headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["type"] == "INDIVIDUAL"
        assert data["languageAssessmentType"] == "PRONUNCIATION_UK"
        assert data["evaluationSettings"]["feedbackSettings"]["accent"] == "uk"
        assert data["questions"][0]["textAnswer"] == "She sells sea shells by the sea shore."
        assert data["totalStudentsInScope"] == 1


class TestListAssignments:
    """GET /api/assignments"""

    def test_teacher_sees_only_own(self, client, seed, auth_headers, make_assignment):
        make_assignment(topic="Mine")
        make_assignment(topic="Theirs", teacher=seed.other_teacher)

        response = client.get("/api/assignments", headers=auth_headers(seed.teacher))

        body = response.json()
        assert [item["topic"] for item in body["data"]] == ["Mine"]
        assert body["pagination"] == {"page": 1, "limit": 50, "total": 1, "totalPages": 1}

    def test_admin_sees_everything(self, client, seed, auth_headers, make_assignment):
        make_assignment(topic="Mine")
        make_assignment(topic="Theirs", teacher=seed.other_teacher)

        response = client.get("/api/assignments", headers=auth_headers(seed.admin))

        assert response.json()["pagination"]["total"] == 2

    def test_students_see_active_assignments_in_scope(self, client, seed, auth_headers, make_assignment):
        make_assignment(topic="For class A")
        make_assignment(topic="For class B", class_ids=[seed.class_b.id], student_ids=[])
        make_assignment(topic="Later", scheduledPublishAt=(datetime.utcnow() + timedelta(days=3)).isoformat())

        response = client.get("/api/assignments", headers=auth_headers(seed.alice))

        assert [item["topic"] for item in response.json()["data"]] == ["For class A"]

    def test_filters(self, client, seed, auth_headers, make_assignment):
        make_assignment(topic="Grammar basics")
        make_assignment(topic="Vocabulary", class_ids=[seed.class_b.id], student_ids=[], type="INDIVIDUAL")
        make_assignment(topic="Grammar later", scheduledPublishAt=(datetime.utcnow() + timedelta(days=3)).isoformat())
        headers = auth_headers(seed.teacher)

        def topics(**params):
            response = client.get("/api/assignments", params=params, headers=headers)
            assert response.status_code == status.HTTP_200_OK
            return sorted(item["topic"] for item in response.json()["data"])

        assert topics(search="GRAMMAR") == ["Grammar basics", "Grammar later"]
        assert topics(classId=seed.class_b.id) == ["Vocabulary"]
        assert topics(type="INDIVIDUAL") == ["Vocabulary"]
        assert topics(status="PUBLISHED") == ["Grammar basics", "Vocabulary"]
        assert topics(status="SCHEDULED") == ["Grammar later"]
        assert topics(status="DRAFT") == ["Grammar later"]
        assert topics(languageId=seed.english.id) == ["Grammar basics", "Grammar later", "Vocabulary"]

    def test_scheduled_assignments_come_first(self, client, seed, auth_headers, make_assignment):
        make_assignment(topic="Now")
        make_assignment(topic="Later", scheduledPublishAt=(datetime.utcnow() + timedelta(days=3)).isoformat())

        response = client.get("/api/assignments", headers=auth_headers(seed.teacher))

        assert [item["topic"] for item in response.json()["data"]] == ["Later", "Now"]

    def test_pagination(self, client, seed, auth_headers, make_assignment):
        for index in range(3):
            make_assignment(topic=f"Assignment {index}")

        response = client.get("/api/assignments", params={"page": 2, "limit": 2}, headers=auth_headers(seed.teacher))

        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}

    def test_invalid_status_filter(self, client, seed, auth_headers):
        response = client.get("/api/assignments", params={"status": "ARCHIVED"}, headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_my_assignments(self, client, seed, auth_headers, make_assignment):
        make_assignment(topic="Now")
        make_assignment(topic="Later", scheduledPublishAt=(datetime.utcnow() + timedelta(days=3)).isoformat())
        headers = auth_headers(seed.teacher)

        active = client.get("/api/assignments/my", headers=headers).json()["data"]
        scheduled = client.get("/api/assignments/my", params={"status": "scheduled"}, headers=headers).json()["data"]

        assert [item["topic"] for item in active] == ["Now"]
        assert [item["topic"] for item in scheduled] == ["Later"]


class TestGetAssignment:
    def test_student_in_scope(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.get(f"/api/assignments/{assignment.id}", headers=auth_headers(seed.carol))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["id"] == assignment.id

    def test_student_out_of_scope(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.get(f"/api/assignments/{assignment.id}", headers=auth_headers(seed.dave))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_student_cannot_see_unpublished(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment(scheduledPublishAt=(datetime.utcnow() + timedelta(days=1)).isoformat())

        response = client.get(f"/api/assignments/{assignment.id}", headers=auth_headers(seed.alice))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_assignment(self, client, seed, auth_headers):
        response = client.get("/api/assignments/does-not-exist", headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Assignment not found"


class TestUpdateAssignment:
    """PUT /api/assignments/{id}"""

    def test_update_fields(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.put(
            f"/api/assignments/{assignment.id}",
            json={"topic": "Renamed", "color": "#000000"},
            headers=auth_headers(seed.teacher),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["topic"] == "Renamed"
        assert data["color"] == "#000000"
        assert len(data["questions"]) == 2

    def test_sync_questions(self, client, test_db, seed, auth_headers, make_assignment):
        assignment = make_assignment(questions=2)
        first_id, second_id = [question.id for question in assignment.questions]

        response = client.put(
            f"/api/assignments/{assignment.id}",
            json={
                "questions": [
                    {"id": second_id, "textQuestion": "Second, edited", "textAnswer": "B"},
                    {"textQuestion": "Brand new", "textAnswer": "C"},
                ]
            },
            headers=auth_headers(seed.teacher),
        )

        assert response.status_code == status.HTTP_200_OK
        questions = response.json()["data"]["questions"]
        assert [question["textQuestion"] for question in questions] == ["Second, edited", "Brand new"]
        assert questions[0]["id"] == second_id
        assert test_db.get(Question, first_id) is None

    def test_empty_question_list_is_rejected(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.put(
            f"/api/assignments/{assignment.id}", json={"questions": []}, headers=auth_headers(seed.teacher)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_future_schedule_forces_inactive(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.put(
            f"/api/assignments/{assignment.id}",
            json={"isActive": True, "scheduledPublishAt": (datetime.utcnow() + timedelta(days=1)).isoformat()},
            headers=auth_headers(seed.teacher),
        )

        assert response.json()["data"]["isActive"] is False

    def test_replacing_scope_updates_statistics(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.put(
            f"/api/assignments/{assignment.id}",
            json={"classIds": [seed.class_b.id], "studentIds": []},
            headers=auth_headers(seed.teacher),
        )

        data = response.json()["data"]
        assert [item["id"] for item in data["classes"]] == [seed.class_b.id]
        assert data["totalStudentsInScope"] == 1

        alice_stats = client.get(f"/api/statistics/students/{seed.alice.id}", headers=auth_headers(seed.alice))
        assert alice_stats.json()["data"]["totalAssignments"] == 0
        dave_stats = client.get(f"/api/statistics/students/{seed.dave.id}", headers=auth_headers(seed.dave))
        assert dave_stats.json()["data"]["totalAssignments"] == 1

    def test_other_teacher_cannot_update(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.put(
            f"/api/assignments/{assignment.id}", json={"topic": "Hijack"}, headers=auth_headers(seed.other_teacher)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_update_is_logged(self, client, test_db, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        client.put(f"/api/assignments/{assignment.id}", json={"topic": "Logged"}, headers=auth_headers(seed.admin))

        log = (
            test_db.query(ActivityLog)
            .filter(ActivityLog.assignment_id == assignment.id, ActivityLog.type == ActivityType.ASSIGNMENT_UPDATED)
            .one()
        )
        assert log.user_id == seed.admin.id
        assert log.details == {"fields": ["topic"]}


class TestDeleteAssignment:
    """DELETE /api/assignments/{id}"""

    def test_owner_deletes(self, client, test_db, seed, auth_headers, make_assignment):
        assignment = make_assignment()
        assignment_id = assignment.id

        response = client.delete(f"/api/assignments/{assignment_id}", headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "Assignment deleted successfully"
        assert test_db.get(Assignment, assignment_id) is None
        log = test_db.query(ActivityLog).filter(ActivityLog.type == ActivityType.ASSIGNMENT_DELETED).one()
        assert log.assignment_id == assignment_id

    def test_forbidden_names_owner(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.delete(f"/api/assignments/{assignment.id}", headers=auth_headers(seed.other_teacher))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert "teacher" in response.json()["error"]

    def test_missing_assignment(self, client, seed, auth_headers):
        response = client.delete("/api/assignments/does-not-exist", headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.parametrize("role_user", ["alice", "dave"])
    def test_students_cannot_delete(self, client, seed, auth_headers, make_assignment, role_user):
        assignment = make_assignment()

        response = client.delete(
            f"/api/assignments/{assignment.id}", headers=auth_headers(getattr(seed, role_user))
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


def test_assignment_types_round_trip_through_models(test_db, seed, make_assignment):
    assignment = make_assignment(type="INDIVIDUAL")

    assert assignment.type == AssignmentType.INDIVIDUAL
    assert assignment.evaluation_settings.type == EvaluationType.CUSTOM
