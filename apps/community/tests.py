import json
from uuid import uuid4

from django.test import TestCase, Client
from django.contrib.auth import get_user_model

from apps.identity.models import UserRole
from apps.governance.models import AuditLog
from .models import Post, Comment, PostType
from . import services


User = get_user_model()


def make_user(org_id, name, role=UserRole.RESIDENT):
    return User.objects.create_user(
        username=name,
        email=f"{name}@test.com",
        password="testpass123",
        full_name=name.title(),
        org_id=org_id,
        role=role,
    )


class CommunityServiceTest(TestCase):

    def setUp(self):
        self.org_id = uuid4()
        self.alice = make_user(self.org_id, "alice")
        self.bob = make_user(self.org_id, "bob")
        self.admin = make_user(self.org_id, "admin", role=UserRole.ADMIN)

    def test_create_post_trims_content(self):
        post = services.create_post(self.alice, "  Xin chào  ", post_type=PostType.EVENT)
        self.assertEqual(post.content, "Xin chào")
        self.assertEqual(post.org_id, self.org_id)

    def test_post_validation(self):
        with self.assertRaisesMessage(ValueError, "Nội dung bài đăng không được để trống"):
            services.create_post(self.alice, "   ")
        with self.assertRaisesMessage(ValueError, "Nội dung bài đăng không được vượt quá 2000 ký tự"):
            services.create_post(self.alice, "x" * 2001)
        with self.assertRaisesMessage(ValueError, "Loại bài đăng không hợp lệ"):
            services.create_post(self.alice, "hello", post_type="spam")
        self.assertEqual(Post.objects.count(), 0)

    def test_like_twice_toggles_back(self):
        post = services.create_post(self.alice, "hello")

        first = services.toggle_post_like(post.id, self.bob)
        self.assertTrue(first.liked)
        self.assertEqual(first.like_count, 1)

        second = services.toggle_post_like(post.id, self.bob)
        self.assertFalse(second.liked)
        self.assertEqual(second.like_count, 0)

    def test_comment_like_toggle(self):
        post = services.create_post(self.alice, "hello")
        comment = services.create_comment(post, self.bob, "nice")

        self.assertTrue(services.toggle_comment_like(comment.id, self.alice).liked)
        result = services.toggle_comment_like(comment.id, self.alice)
        self.assertFalse(result.liked)
        self.assertEqual(result.like_count, 0)

    def test_anonymous_author_hidden_from_others(self):
        post = services.create_post(self.alice, "secret", is_anonymous=True)
        post = services.get_post(self.org_id, post.id)

        self.assertIsNone(services.serialize_post(post, self.bob).user)
        self.assertEqual(services.serialize_post(post, self.alice).user.id, self.alice.id)
        self.assertEqual(services.serialize_post(post, self.admin).user.id, self.alice.id)

    def test_reply_parent_must_be_on_same_post(self):
        post = services.create_post(self.alice, "one")
        other = services.create_post(self.alice, "two")
        foreign = services.create_comment(other, self.bob, "elsewhere")

        with self.assertRaisesMessage(ValueError, "Không tìm thấy bình luận"):
            services.create_comment(post, self.bob, "reply", parent_comment_id=foreign.id)

    def test_empty_comment_update_rejected(self):
        post = services.create_post(self.alice, "one")
        comment = services.create_comment(post, self.bob, "first")

        with self.assertRaisesMessage(ValueError, "Nội dung bình luận không được để trống"):
            services.update_comment(comment, self.bob, "  ")

    def test_only_author_or_moderator_edits(self):
        post = services.create_post(self.alice, "one")
        with self.assertRaises(PermissionError):
            services.update_post(post, self.bob, {"content": "hijack"})

        services.update_post(post, self.admin, {"content": "moderated"})
        post.refresh_from_db()
        self.assertEqual(post.content, "moderated")

    def test_build_comment_threads(self):
        post = services.create_post(self.alice, "thread")
        root_a = services.create_comment(post, self.bob, "a")
        root_b = services.create_comment(post, self.alice, "b")
        services.create_comment(post, self.alice, "a.1", parent_comment_id=root_a.id)
        services.create_comment(post, self.bob, "a.2", parent_comment_id=root_a.id)

        threads = services.build_comment_threads(services.list_comments(post))

        self.assertEqual([t["id"] for t in threads], [root_a.id, root_b.id])
        self.assertEqual([r["content"] for r in threads[0]["replies"]], ["a.1", "a.2"])
        self.assertEqual(threads[1]["replies"], [])


class CommunityAPITest(TestCase):

    def setUp(self):
        self.client = Client()
        self.org_id = uuid4()
        self.alice = make_user(self.org_id, "alice")
        self.bob = make_user(self.org_id, "bob")
        self.admin = make_user(self.org_id, "admin", role=UserRole.ADMIN)

    def test_create_and_list_posts(self):
        self.client.force_login(self.alice)
        response = self.client.post(
            "/api/posts",
            data=json.dumps({"content": "Thông báo cúp nước", "post_type": "announcement"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["user"]["full_name"], "Alice")

        services.create_post(make_user(uuid4(), "stranger"), "other org")

        response = self.client.get("/api/posts")
        body = response.json()
        self.assertEqual(body["pagination"]["total"], 1)
        self.assertEqual(body["data"][0]["post_type"], "announcement")

    def test_like_endpoint_toggles(self):
        post = services.create_post(self.alice, "hello")
        self.client.force_login(self.bob)

        response = self.client.post(f"/api/posts/{post.id}/like")
        self.assertEqual(response.json(), {"success": True, "liked": True, "like_count": 1})

        response = self.client.post(f"/api/posts/{post.id}/like")
        self.assertFalse(response.json()["liked"])

    def test_comment_flow(self):
        post = services.create_post(self.alice, "hello")
        self.client.force_login(self.bob)

        response = self.client.post(
            f"/api/posts/{post.id}/comments",
            data=json.dumps({"content": "Hay quá"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        comment_id = response.json()["id"]

        response = self.client.post(
            f"/api/posts/{post.id}/comments",
            data=json.dumps({"content": "Đồng ý", "parent_comment_id": comment_id}),
            content_type="application/json",
        )
        self.assertEqual(response.json()["parent_comment_id"], comment_id)

        response = self.client.get(f"/api/posts/{post.id}/comments")
        body = response.json()
        self.assertEqual(len(body["comments"]), 2)
        self.assertEqual(len(body["threads"]), 1)
        self.assertEqual(len(body["threads"][0]["replies"]), 1)

    def test_other_user_cannot_delete_comment(self):
        post = services.create_post(self.alice, "hello")
        comment = services.create_comment(post, self.alice, "mine")
        self.client.force_login(self.bob)

        response = self.client.delete(f"/api/posts/{post.id}/comments/{comment.id}")

        self.assertEqual(response.status_code, 403)
        self.assertTrue(Comment.objects.filter(id=comment.id).exists())

    def test_moderator_delete_is_audited(self):
        post = services.create_post(self.alice, "off topic")
        self.client.force_login(self.admin)

        response = self.client.delete(f"/api/posts/{post.id}")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(Post.objects.filter(id=post.id).exists())
        self.assertTrue(AuditLog.objects.filter(action="DELETE_POST", target_id=post.id).exists())

    def test_unknown_post(self):
        self.client.force_login(self.alice)
        response = self.client.get(f"/api/posts/{uuid4()}")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Không tìm thấy bài đăng")
