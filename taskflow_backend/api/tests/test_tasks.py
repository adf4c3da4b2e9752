from datetime import timedelta

from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from api.models import Activity, Comment, Task, User

from .factories import add_member, make_project, make_task, make_user


class TaskStatusTest(APITestCase):
    def setUp(self):
        self.owner = make_user("lead", role=User.Role.TEAM_LEADER)
        self.project = make_project(self.owner)
        self.task = make_task(self.project, self.owner)
        self.url = f"/api/tasks/{self.task.id}/"
        self.client.force_authenticate(user=self.owner)

    def test_set_status_stamps_only_on_entry(self):
        task = Task(status=Task.Status.TODO)
        task.set_status(Task.Status.IN_PROGRESS)
        self.assertIsNone(task.completed_at)

        task.set_status(Task.Status.COMPLETED)
        stamped = task.completed_at
        self.assertIsNotNone(stamped)

        task.set_status(Task.Status.COMPLETED)
        self.assertEqual(task.completed_at, stamped)

        task.set_status(Task.Status.REVIEW)
        self.assertEqual(task.completed_at, stamped)

    def test_completing_through_the_api_stamps_completed_at(self):
        before = timezone.now()
        response = self.client.patch(self.url, {"status": "completed"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.task.refresh_from_db()
        self.assertEqual(self.task.status, Task.Status.COMPLETED)
        self.assertGreaterEqual(self.task.completed_at, before)
        self.assertIsNotNone(response.data["completed_at"])

    def test_repeated_completion_keeps_first_stamp(self):
        self.client.patch(self.url, {"status": "completed"}, format="json")
        self.task.refresh_from_db()
        first = self.task.completed_at

        self.client.patch(self.url, {"status": "completed"}, format="json")
        self.client.patch(self.url, {"title": "Renamed"}, format="json")
        self.task.refresh_from_db()
        self.assertEqual(self.task.completed_at, first)

    def test_reopening_does_not_clear_completed_at(self):
        self.client.patch(self.url, {"status": "completed"}, format="json")
        self.client.patch(self.url, {"status": "in_progress"}, format="json")

        self.task.refresh_from_db()
        self.assertEqual(self.task.status, Task.Status.IN_PROGRESS)
        self.assertIsNotNone(self.task.completed_at)

    def test_completing_again_after_reopening_restamps(self):
        self.client.patch(self.url, {"status": "completed"}, format="json")
        earlier = timezone.now() - timedelta(hours=1)
        Task.objects.filter(id=self.task.id).update(completed_at=earlier)

        self.client.patch(self.url, {"status": "in_progress"}, format="json")
        self.task.refresh_from_db()
        self.assertEqual(self.task.completed_at, earlier)

        response = self.client.patch(self.url, {"status": "completed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.task.refresh_from_db()
        self.assertGreater(self.task.completed_at, earlier)

    def test_non_completing_update_leaves_completed_at_unset(self):
        self.client.patch(self.url, {"status": "review"}, format="json")
        self.task.refresh_from_db()
        self.assertIsNone(self.task.completed_at)

    def test_completed_at_is_read_only(self):
        response = self.client.patch(self.url, {"completed_at": "2020-01-01T00:00:00Z"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.task.refresh_from_db()
        self.assertIsNone(self.task.completed_at)


class TaskCrudTest(APITestCase):
    def setUp(self):
        self.owner = make_user("lead", role=User.Role.TEAM_LEADER)
        self.member = make_user("bob")
        self.outsider = make_user("eve")
        self.project = make_project(self.owner)
        add_member(self.project, self.member)

    def test_requires_authentication(self):
        task = make_task(self.project, self.owner)
        requests = [
            ("get", "/api/tasks/"),
            ("post", "/api/tasks/"),
            ("get", f"/api/tasks/{task.id}/"),
            ("put", f"/api/tasks/{task.id}/"),
            ("delete", f"/api/tasks/{task.id}/"),
            ("get", f"/api/tasks/{task.id}/comments/"),
            ("post", f"/api/tasks/{task.id}/comments/"),
        ]
        for method, url in requests:
            response = getattr(self.client, method)(url, format="json")
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED, f"{method} {url}")
        self.assertEqual(Task.objects.count(), 1)

    def test_create_sets_creator_and_records_activity(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post(
            "/api/tasks/",
            {
                "project_id": self.project.id,
                "title": "Draft outline",
                "assignee_id": self.member.id,
                "priority": "high",
                "deadline": "2030-05-01",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["creator_id"], self.member.id)
        self.assertEqual(response.data["assignee"]["username"], "bob")
        self.assertEqual(response.data["status"], Task.Status.TODO)
        self.assertIsNone(response.data["completed_at"])

        activity = Activity.objects.get()
        self.assertEqual(activity.action, Activity.Action.CREATE_TASK)
        self.assertEqual(activity.project_id, self.project.id)
        self.assertEqual(activity.task_id, response.data["id"])
        self.assertEqual(activity.description, "created task: Draft outline")

    def test_create_with_unknown_project_is_400(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post("/api/tasks/", {"project_id": 999, "title": "Orphan"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Task.objects.exists())
        self.assertFalse(Activity.objects.exists())

    def test_invalid_deadline_is_400(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post(
            "/api/tasks/", {"project_id": self.project.id, "title": "T", "deadline": "soon"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["deadline"], ["Invalid date format for deadline."])

    def test_put_is_partial(self):
        task = make_task(self.project, self.owner, description="Keep", priority=Task.Priority.HIGH)
        self.client.force_authenticate(user=self.member)

        response = self.client.put(f"/api/tasks/{task.id}/", {"title": "Renamed"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        task.refresh_from_db()
        self.assertEqual(task.title, "Renamed")
        self.assertEqual(task.description, "Keep")
        self.assertEqual(task.priority, Task.Priority.HIGH)
        activity = Activity.objects.get()
        self.assertEqual(activity.action, Activity.Action.UPDATE_TASK)
        self.assertEqual(activity.description, "updated task: Write report")

    def test_tasks_cannot_change_project(self):
        other = make_project(self.owner, name="Gemini")
        task = make_task(self.project, self.owner)
        self.client.force_authenticate(user=self.owner)

        response = self.client.patch(f"/api/tasks/{task.id}/", {"project_id": other.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        task.refresh_from_db()
        self.assertEqual(task.project_id, self.project.id)

    def test_unassigning(self):
        task = make_task(self.project, self.owner, assignee=self.member)
        self.client.force_authenticate(user=self.owner)
        response = self.client.patch(f"/api/tasks/{task.id}/", {"assignee_id": None}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data["assignee"])

    def test_update_unknown_task_is_404(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.patch("/api/tasks/999/", {"title": "x"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Activity.objects.exists())


class TaskListTest(APITestCase):
    def setUp(self):
        self.owner = make_user("lead", role=User.Role.TEAM_LEADER)
        self.member = make_user("bob")
        self.project = make_project(self.owner)
        self.other_project = make_project(self.owner, name="Gemini")
        self.mine = make_task(self.project, self.owner, title="Mine", assignee=self.member)
        self.theirs = make_task(self.project, self.owner, title="Theirs", assignee=self.owner)
        self.elsewhere = make_task(
            self.other_project, self.owner, title="Elsewhere", assignee=self.member, status=Task.Status.REVIEW
        )
        self.client.force_authenticate(user=self.member)

    def titles(self, response):
        return sorted(t["title"] for t in response.data)

    def test_defaults_to_tasks_assigned_to_caller(self):
        response = self.client.get("/api/tasks/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.titles(response), ["Elsewhere", "Mine"])

    def test_filter_by_project(self):
        response = self.client.get("/api/tasks/", {"projectId": self.project.id})
        self.assertEqual(self.titles(response), ["Mine", "Theirs"])

    def test_filter_by_assignee(self):
        response = self.client.get("/api/tasks/", {"assigneeId": self.owner.id})
        self.assertEqual(self.titles(response), ["Theirs"])

    def test_filter_by_status(self):
        response = self.client.get("/api/tasks/", {"status": "review"})
        self.assertEqual(self.titles(response), ["Elsewhere"])

    def test_filter_by_deadline_range(self):
        soon = timezone.now() + timedelta(days=2)
        Task.objects.filter(id=self.mine.id).update(deadline=soon)
        Task.objects.filter(id=self.elsewhere.id).update(deadline=soon + timedelta(days=30))

        response = self.client.get(
            "/api/tasks/", {"due_before": (soon + timedelta(days=1)).isoformat()}
        )
        self.assertEqual(self.titles(response), ["Mine"])

    def test_listing_records_no_activity(self):
        self.client.get("/api/tasks/")
        self.client.get(f"/api/tasks/{self.mine.id}/")
        self.assertFalse(Activity.objects.exists())


class TaskDeleteTest(APITestCase):
    def setUp(self):
        self.owner = make_user("lead", role=User.Role.TEAM_LEADER)
        self.creator = make_user("bob")
        self.other = make_user("eve")
        self.admin = make_user("root", role=User.Role.ADMIN)
        self.project = make_project(self.owner)
        self.task = make_task(self.project, self.creator)
        Comment.objects.create(task=self.task, user=self.creator, content="note")
        self.url = f"/api/tasks/{self.task.id}/"

    def assert_deleted_by(self, user):
        self.client.force_authenticate(user=user)
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Task.objects.exists())
        self.assertFalse(Comment.objects.exists())
        activity = Activity.objects.get()
        self.assertEqual(activity.action, Activity.Action.DELETE_TASK)
        self.assertEqual(activity.user_id, user.id)
        self.assertEqual(activity.task_id, self.task.id)

    def test_creator_can_delete(self):
        self.assert_deleted_by(self.creator)

    def test_project_owner_can_delete(self):
        self.assert_deleted_by(self.owner)

    def test_admin_can_delete(self):
        self.assert_deleted_by(self.admin)

    def test_others_are_forbidden(self):
        self.client.force_authenticate(user=self.other)
        response = self.client.delete(self.url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["detail"], "Forbidden: Insufficient permissions to delete this task")
        self.assertTrue(Task.objects.exists())
        self.assertFalse(Activity.objects.exists())


class TaskCommentsTest(APITestCase):
    def setUp(self):
        self.owner = make_user("lead", role=User.Role.TEAM_LEADER)
        self.member = make_user("bob")
        self.project = make_project(self.owner)
        self.task = make_task(self.project, self.owner)
        self.url = f"/api/tasks/{self.task.id}/comments/"
        self.client.force_authenticate(user=self.member)

    def test_add_and_list_comments(self):
        response = self.client.post(self.url, {"content": "Looks good"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["task_id"], self.task.id)
        self.assertEqual(response.data["user"]["username"], "bob")

        activity = Activity.objects.get()
        self.assertEqual(activity.action, Activity.Action.COMMENT_TASK)
        self.assertEqual(activity.task_id, self.task.id)
        self.assertEqual(activity.project_id, self.project.id)
        self.assertEqual(activity.description, "commented on task: Write report")

        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c["content"] for c in response.data], ["Looks good"])

    def test_empty_content_is_400(self):
        response = self.client.post(self.url, {"content": ""}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Comment.objects.exists())
        self.assertFalse(Activity.objects.exists())

    def test_comment_on_unknown_task_is_404(self):
        response = self.client.post("/api/tasks/999/comments/", {"content": "?"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
