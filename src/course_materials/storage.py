import logging

import boto3
from botocore.exceptions import ClientError

from .config import Settings

logger = logging.getLogger(__name__)


class MaterialStorage:
    """S3 side of the upload: presigned PUT URLs and existence checks."""

    def __init__(self, s3_client, bucket: str, region: str, expires_in: int):
        self.s3 = s3_client
        self.bucket = bucket
        self.region = region
        self.expires_in = expires_in

    @classmethod
    def from_settings(cls, settings: Settings) -> "MaterialStorage":
        s3_client = boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )
        return cls(s3_client, settings.bucket_name, settings.aws_region, settings.url_expires_in)

    def presign_upload(self, key: str, content_type: str) -> str:
        # The signature covers Content-Type, so the client must PUT with the same header
        url = self.s3.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=self.expires_in,
        )
        logger.info("Presigned PUT URL generated for s3://%s/%s", self.bucket, key)
        return url

    def object_exists(self, key: str) -> bool:
        try:
            self.s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True
