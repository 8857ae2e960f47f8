"""Supabase Storage implementation for captured photos."""

from dataclasses import dataclass

from supabase import Client

from hunt_sync.services.photos import ImageStorage


@dataclass
class SupabasePhotoStorage(ImageStorage):
    """Stores photos in a Supabase Storage bucket."""

    client: Client
    bucket: str

    def upload_signed(self, path: str, content: bytes, content_type: str) -> str:
        """Issue a signed upload target, upload to it, return the public URL."""
        bucket = self.client.storage.from_(self.bucket)
        target = bucket.create_signed_upload_url(path)
        token = target.get("token")
        if not token:
            raise RuntimeError("Storage did not issue an upload token")
        bucket.upload_to_signed_url(
            target.get("path") or path,
            token,
            content,
            {"content-type": content_type, "upsert": "true"},
        )
        return bucket.get_public_url(path)

    def upload_direct(self, path: str, content: bytes, content_type: str) -> str:
        """Upload straight to the bucket, return the public URL."""
        bucket = self.client.storage.from_(self.bucket)
        bucket.upload(
            path,
            content,
            {"content-type": content_type, "upsert": "true"},
        )
        return bucket.get_public_url(path)

    def delete(self, path: str) -> None:
        """Remove an object from the bucket."""
        self.client.storage.from_(self.bucket).remove([path])
