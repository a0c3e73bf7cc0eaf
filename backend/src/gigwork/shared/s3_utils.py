"""
S3 adapter for the blob store.
Files live in a private bucket; downloads go through presigned URLs.
"""
import boto3
from botocore.config import Config as BotoConfig

from .aws import AWS_ERRORS, client_error_code, remote_error
from .blob_store import BlobStore
from .config import Config, config
from .logging import logger


class S3BlobStore(BlobStore):

    def __init__(self, cfg: Config = config, client=None, bucket_name: str = None):
        self.config = cfg
        self.bucket = bucket_name or cfg.MEDIA_BUCKET
        # S3 client with custom signature version for presigned URLs
        self.s3_client = client or boto3.client(
            's3',
            region_name=cfg.AWS_REGION,
            config=BotoConfig(signature_version='s3v4')
        )

    @property
    def bucket_url(self) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/"

    def key_for(self, url_or_key: str) -> str:
        """
        Extract the object key from one of our bucket URLs.

        Returns:
            The key, or None for external URLs
        """
        if not url_or_key:
            return None
        if url_or_key.startswith('http://') or url_or_key.startswith('https://'):
            if url_or_key.startswith(self.bucket_url):
                return url_or_key[len(self.bucket_url):]
            return None
        return url_or_key

    def upload(self, path: str, data: bytes, content_type: str = 'application/octet-stream') -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type
            )
        except AWS_ERRORS as e:
            raise remote_error(f'upload of {path}', e)
        logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{path}")
        return self.bucket_url + path

    def delete(self, url: str) -> bool:
        key = self.key_for(url)
        if not key:
            logger.warning(f"Not deleting {url}: not in bucket {self.bucket}")
            return False
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except AWS_ERRORS as e:
            if client_error_code(e) in ('NoSuchKey', '404'):
                return False
            raise remote_error(f'delete of {key}', e)
        logger.info(f"Deleted s3://{self.bucket}/{key}")
        return True

    def download_url(self, url: str) -> str:
        """
        Generate a presigned URL for S3 object download.

        Returns:
            Presigned URL, or the original URL for external files
        """
        key = self.key_for(url)
        if not key:
            return url
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket,
                    'Key': key
                },
                ExpiresIn=self.config.DOWNLOAD_URL_EXPIRATION
            )
        except AWS_ERRORS as e:
            raise remote_error(f'presigning {key}', e)
