import uuid
from django.conf import settings
from django.db import models


class PostType(models.TextChoices):
    GENERAL = 'general', 'General'
    ANNOUNCEMENT = 'announcement', 'Announcement'
    EVENT = 'event', 'Event'
    COMPLAINT = 'complaint', 'Complaint'
    SUGGESTION = 'suggestion', 'Suggestion'


class Post(models.Model):
    """
    A community feed post. Anonymous posts hide their author from other
    residents but not from the author or moderators.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)

    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='posts')
    content = models.TextField(max_length=2000)
    post_type = models.CharField(
        max_length=20,
        choices=PostType.choices,
        default=PostType.GENERAL,
        db_index=True,
    )
    image_url = models.URLField(blank=True, null=True)
    is_anonymous = models.BooleanField(default=False)
    likes = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='liked_posts', blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_post_type_display()}: {self.content[:50]}"


class Comment(models.Model):
    """
    A comment on a post. Replies point at their parent comment on the same post.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='comments')
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='comments')
    content = models.TextField(max_length=500)
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies',
    )
    likes = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='liked_comments', blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"Comment by {self.author_id} on {self.post_id}"
