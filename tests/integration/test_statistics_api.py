from fastapi import status

from models import StudentStats


class TestAssignmentStatistics:
    def test_owner_reads_rollup(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment(questions=3)

        response = client.get(f"/api/statistics/assignments/{assignment.id}", headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["assignmentId"] == assignment.id
        assert data["totalStudents"] == 3
        assert data["notStartedStudents"] == 3
        assert data["totalQuestions"] == 3
        assert data["completionRate"] == 0.0

    def test_other_teacher_is_forbidden(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.get(
            f"/api/statistics/assignments/{assignment.id}", headers=auth_headers(seed.other_teacher)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_students_are_forbidden(self, client, seed, auth_headers, make_assignment):
        assignment = make_assignment()

        response = client.get(f"/api/statistics/assignments/{assignment.id}", headers=auth_headers(seed.alice))

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestStudentStatistics:
    def test_student_reads_own_rollup(self, client, seed, auth_headers, make_assignment):
        make_assignment(questions=2)

        response = client.get(f"/api/statistics/students/{seed.alice.id}", headers=auth_headers(seed.alice))

        data = response.json()["data"]
        assert data["studentId"] == seed.alice.id
        assert data["totalAssignments"] == 1
        assert data["totalQuestions"] == 2
        assert data["lastActivityDate"] is None

    def test_rollup_is_created_on_first_read(self, client, test_db, seed, auth_headers):
        assert test_db.query(StudentStats).filter(StudentStats.student_id == seed.dave.id).first() is None

        response = client.get(f"/api/statistics/students/{seed.dave.id}", headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["totalAssignments"] == 0
        assert test_db.query(StudentStats).filter(StudentStats.student_id == seed.dave.id).count() == 1

    def test_student_cannot_read_classmate(self, client, seed, auth_headers):
        response = client.get(f"/api/statistics/students/{seed.bob.id}", headers=auth_headers(seed.alice))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_student(self, client, seed, auth_headers):
        response = client.get("/api/statistics/students/nobody", headers=auth_headers(seed.admin))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestClassAndTeacherStatistics:
    def test_class_rollup_is_built_when_missing(self, client, seed, auth_headers):
        response = client.get(f"/api/statistics/classes/{seed.class_b.id}", headers=auth_headers(seed.teacher))

        data = response.json()["data"]
        assert data["classId"] == seed.class_b.id
        assert data["totalStudents"] == 1
        assert data["totalAssignments"] == 0
        assert data["studentsNeedingHelp"] == 0

    def test_unknown_class(self, client, seed, auth_headers):
        response = client.get("/api/statistics/classes/nowhere", headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Class not found"

    def test_teacher_reads_own_rollup(self, client, seed, auth_headers, make_assignment):
        make_assignment(questions=2)
        make_assignment(questions=1, class_ids=[seed.class_b.id], student_ids=[])

        response = client.get(f"/api/statistics/teachers/{seed.teacher.id}", headers=auth_headers(seed.teacher))

        data = response.json()["data"]
        assert data["totalAssignments"] == 2
        assert data["totalClasses"] == 2
        assert data["totalStudents"] == 4
        assert data["totalQuestions"] == 3
        assert data["activeAssignments"] == 2

    def test_teacher_cannot_read_colleague(self, client, seed, auth_headers):
        response = client.get(
            f"/api/statistics/teachers/{seed.other_teacher.id}", headers=auth_headers(seed.teacher)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_reads_any_teacher(self, client, seed, auth_headers):
        response = client.get(
            f"/api/statistics/teachers/{seed.other_teacher.id}", headers=auth_headers(seed.admin)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["totalAssignments"] == 0


class TestSchoolStatistics:
    def test_school_row(self, client, seed, auth_headers, make_assignment):
        make_assignment(questions=2)

        response = client.get("/api/statistics/school", headers=auth_headers(seed.admin))

        data = response.json()["data"]
        assert data["totalAssignments"] == 1
        assert data["totalQuestions"] == 2
        assert data["totalStudents"] == 4
        assert data["totalTeachers"] == 2
        assert data["totalClasses"] == 2

    def test_school_row_is_built_when_missing(self, client, seed, auth_headers):
        response = client.get("/api/statistics/school", headers=auth_headers(seed.teacher))

        data = response.json()["data"]
        assert data["totalUsers"] == 7
        assert data["notStartedStudents"] == 4

    def test_trend(self, client, seed, auth_headers, make_assignment):
        make_assignment()

        response = client.get("/api/statistics/school/trend", params={"days": 7}, headers=auth_headers(seed.admin))

        rows = response.json()["data"]
        assert len(rows) == 1
        assert rows[0]["totalAssignments"] == 1

    def test_trend_days_are_bounded(self, client, seed, auth_headers):
        response = client.get("/api/statistics/school/trend", params={"days": 0}, headers=auth_headers(seed.admin))

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestRecalculate:
    def test_admin_recalculates_everything(self, client, seed, auth_headers, make_assignment):
        make_assignment()

        response = client.post("/api/statistics/recalculate", headers=auth_headers(seed.admin))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Statistics recalculated successfully"
        assert body["data"] == {"assignments": 1, "students": 4, "classes": 2, "teachers": 2}

    def test_teachers_cannot_recalculate(self, client, seed, auth_headers):
        response = client.post("/api/statistics/recalculate", headers=auth_headers(seed.teacher))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "Admin access required"
