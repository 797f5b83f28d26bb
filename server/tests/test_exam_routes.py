import time

from tests.conftest import auth_headers, png_data_url, sample_exam_payload


def _create_exam(client, headers, **overrides):
    response = client.post("/api/exam/exams", headers=headers, json=sample_exam_payload(**overrides))
    assert response.status_code == 200, response.text
    return response.json()


class TestTeacherExams:
    def test_create_exam_appears_on_dashboard(self, client, teacher_headers):
        exam = _create_exam(client, teacher_headers)
        assert exam["duration"] == 1800
        assert exam["created_by"] == "1"
        assert len({q["id"] for q in exam["questions"]}) == 3

        dashboard = client.get("/api/exam/teacher/dashboard", headers=teacher_headers).json()
        summary = next(e for e in dashboard if e["id"] == exam["id"])
        assert summary["question_count"] == 3
        assert summary["submission_count"] == 0

    def test_validation_messages(self, client, teacher_headers):
        no_title = client.post("/api/exam/exams", headers=teacher_headers, json=sample_exam_payload(title=" "))
        assert no_title.status_code == 422
        assert "Title is required" in no_title.text

        no_questions = client.post("/api/exam/exams", headers=teacher_headers, json=sample_exam_payload(questions=[]))
        assert "At least one question is required" in no_questions.text

        blank = client.post(
            "/api/exam/exams", headers=teacher_headers, json=sample_exam_payload(questions=[{"text": ""}])
        )
        assert "Question text cannot be empty" in blank.text

        too_long = client.post(
            "/api/exam/exams", headers=teacher_headers, json=sample_exam_payload(duration_minutes=181)
        )
        assert too_long.status_code == 422

    def test_students_cannot_create_exams(self, client, student_headers):
        response = client.post("/api/exam/exams", headers=student_headers, json=sample_exam_payload())
        assert response.status_code == 403

    def test_preview(self, client, teacher_headers):
        exam = _create_exam(client, teacher_headers, is_active=False)
        preview = client.get(f"/api/exam/exams/{exam['id']}/preview", headers=teacher_headers).json()
        assert preview["status"] == "Draft"
        assert preview["duration_minutes"] == 30
        assert preview["difficulty_counts"] == {"easy": 1, "medium": 1, "hard": 1}

    def test_update_and_delete(self, client, teacher_headers):
        exam = _create_exam(client, teacher_headers)
        updated = client.put(
            f"/api/exam/exams/{exam['id']}", headers=teacher_headers, json={"title": "Physics Final"}
        ).json()
        assert updated["title"] == "Physics Final"
        assert updated["questions"] == exam["questions"]

        assert client.delete(f"/api/exam/exams/{exam['id']}", headers=teacher_headers).json() == {"success": True}
        assert client.get(f"/api/exam/exams/{exam['id']}", headers=teacher_headers).status_code == 404

    def test_other_teacher_cannot_manage(self, client, teacher_headers):
        exam = _create_exam(client, teacher_headers)
        client.post("/register_teacher", json={"name": "Other", "password": "pw"})
        other = auth_headers(client, "/login_teacher", {"username": "Other", "password": "pw"})

        response = client.delete(f"/api/exam/exams/{exam['id']}", headers=other)
        assert response.status_code == 403


class TestStudentView:
    def test_inactive_exam_hidden(self, client, teacher_headers, student_headers):
        exam = _create_exam(client, teacher_headers)
        client.patch(f"/api/exam/exams/{exam['id']}/active", headers=teacher_headers, json={"is_active": False})

        available = client.get("/api/exam/student/dashboard", headers=student_headers).json()["available_exams"]
        assert exam["id"] not in {e["id"] for e in available}
        assert client.get(f"/api/exam/exams/{exam['id']}", headers=student_headers).status_code == 404

        client.patch(f"/api/exam/exams/{exam['id']}/active", headers=teacher_headers, json={"is_active": True})
        available = client.get("/api/exam/student/dashboard", headers=student_headers).json()["available_exams"]
        assert exam["id"] in {e["id"] for e in available}

    def test_submit_orders_answers_by_question(self, client, teacher_headers, student_headers):
        exam = _create_exam(client, teacher_headers)
        q1, q2, q3 = [q["id"] for q in exam["questions"]]

        response = client.post(f"/api/exam/exams/{exam['id']}/submit", headers=student_headers, json={
            "answers": [
                {"question_id": q3, "image_data": png_data_url()},
                {"question_id": q1, "text": "A body stays at rest"},
            ],
        })
        assert response.status_code == 200
        body = response.json()
        assert [a["question_id"] for a in body["submission"]["answers"]] == [q1, q2, q3]
        assert body["submission"]["answers"][1]["text"] == ""
        assert body["pdf_submission_id"]

    def test_single_submission_per_exam(self, client, student_headers):
        first = client.post("/api/exam/exams/1/submit", headers=student_headers, json={"answers": []})
        assert first.status_code == 200

        second = client.post("/api/exam/exams/1/submit", headers=student_headers, json={"answers": []})
        assert second.status_code == 409

        dashboard = client.get("/api/exam/student/dashboard", headers=student_headers).json()
        assert "1" not in {e["id"] for e in dashboard["available_exams"]}
        assert dashboard["submissions"][0]["exam_title"] == "Science Test"

    def test_unknown_question_rejected(self, client, student_headers):
        response = client.post("/api/exam/exams/1/submit", headers=student_headers, json={
            "answers": [{"question_id": "nope", "text": "?"}],
        })
        assert response.status_code == 400


class TestAttempts:
    def test_start_save_and_submit(self, client, student_headers):
        attempt = client.post("/api/exam/exams/1/start", headers=student_headers).json()
        assert attempt["time_left_display"] == "1:00:00"
        attempt_id = attempt["attempt_id"]

        saved = client.put(
            f"/api/exam/attempts/{attempt_id}/answers/2", headers=student_headers, json={"text": "Light energy"}
        ).json()
        assert saved["answers"] == [{"question_id": "2", "text": "Light energy", "image_data": ""}]

        submitted = client.post(f"/api/exam/attempts/{attempt_id}/submit", headers=student_headers)
        assert submitted.status_code == 200
        answers = submitted.json()["submission"]["answers"]
        assert [a["question_id"] for a in answers] == ["1", "2"]
        assert answers[1]["text"] == "Light energy"

        again = client.post(f"/api/exam/attempts/{attempt_id}/submit", headers=student_headers)
        assert again.status_code == 409
        assert client.post("/api/exam/exams/1/start", headers=student_headers).status_code == 409

    def test_restart_resumes_attempt(self, client, student_headers):
        first = client.post("/api/exam/exams/1/start", headers=student_headers).json()
        second = client.post("/api/exam/exams/1/start", headers=student_headers).json()
        assert first["attempt_id"] == second["attempt_id"]

    def test_unknown_question_in_draft(self, client, student_headers):
        attempt = client.post("/api/exam/exams/1/start", headers=student_headers).json()
        response = client.put(
            f"/api/exam/attempts/{attempt['attempt_id']}/answers/99", headers=student_headers, json={"text": "x"}
        )
        assert response.status_code == 404

    def test_timer_auto_submits(self, client, teacher_headers, student_headers, store):
        exam = _create_exam(client, teacher_headers, duration_minutes=5)
        attempt = client.post(f"/api/exam/exams/{exam['id']}/start", headers=student_headers).json()
        client.put(
            f"/api/exam/attempts/{attempt['attempt_id']}/answers/{exam['questions'][0]['id']}",
            headers=student_headers,
            json={"text": "Inertia"},
        )

        # 300 ticks at 10ms each
        deadline = time.time() + 15
        while time.time() < deadline and not store.get_submissions(exam_id=exam["id"]):
            time.sleep(0.1)

        submissions = store.get_submissions(exam_id=exam["id"])
        assert len(submissions) == 1
        assert submissions[0].auto_submitted
        assert submissions[0].answers[0].text == "Inertia"

        state = client.get(f"/api/exam/attempts/{attempt['attempt_id']}", headers=student_headers).json()
        assert state["submitted"] is True
        assert state["time_left"] == 0

    def test_unpublished_exam_is_not_auto_submitted(self, client, teacher_headers, student_headers, attempts, store):
        exam = _create_exam(client, teacher_headers, duration_minutes=5)
        attempt = client.post(f"/api/exam/exams/{exam['id']}/start", headers=student_headers).json()
        client.patch(f"/api/exam/exams/{exam['id']}/active", headers=teacher_headers, json={"is_active": False})

        submit = client.post(f"/api/exam/attempts/{attempt['attempt_id']}/submit", headers=student_headers)
        assert submit.status_code == 404

        open_attempt = attempts.get(attempt["attempt_id"])
        deadline = time.time() + 15
        while time.time() < deadline and not open_attempt.submitted:
            time.sleep(0.1)

        assert open_attempt.submitted
        assert open_attempt.submission_id is None
        assert store.get_submissions(exam_id=exam["id"]) == []
