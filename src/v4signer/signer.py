"""V4 signer facade.

V4Signer binds one read-only credential to the endpoint and scope settings
and exposes the two signing operations: presigned URLs and POST policies.
It holds no mutable state, so one instance can serve concurrent callers.
"""

import logging

from v4signer import metrics
from v4signer.addressing import resolve
from v4signer.assembler import SignedURL, assemble_url
from v4signer.config import SignerConfig
from v4signer.credentials import SigningCredential
from v4signer.errors import SigningError
from v4signer.policy import PolicyDocument, PolicyInput, sign_policy
from v4signer.signing import SigningRequest, sign

logger = logging.getLogger(__name__)


class V4Signer:
    """Produces V4 signed URLs and signed POST policies.

    Attributes:
        credential: The signing credential.
        config: Endpoint, location and service settings.
    """

    def __init__(self, credential: SigningCredential, config: SignerConfig | None = None) -> None:
        """Initialize the signer.

        Args:
            credential: The signing credential. Its key material is checked
                on every signing call, not here.
            config: Signer settings; defaults to the public endpoint with
                location "auto" and service "storage".
        """
        self.credential = credential
        self.config = config or SignerConfig()

    def generate_signed_url(self, request: SigningRequest) -> SignedURL:
        """Sign a URL granting ``request.action`` on the resource.

        Args:
            request: The signing request, including its timestamp.

        Returns:
            The signed URL.

        Raises:
            SigningError subclass: On any invalid input; nothing is signed.
        """
        resource = request.resource
        try:
            address = resolve(
                resource.bucket, resource.object_name, request.addressing, self.config.endpoint
            )
            result = sign(
                request,
                self.credential,
                address,
                location=self.config.location,
                service=self.config.service,
            )
        except SigningError as exc:
            metrics.record_error("url", exc.code)
            logger.info(
                "Rejected signed URL request: %s",
                exc.message,
                extra={
                    "bucket": resource.bucket,
                    "action": request.action.value,
                    "error": exc.code,
                },
            )
            raise

        url = assemble_url(request.scheme, address, result.canonical_query, result.signature)
        metrics.record_signature("url", self.credential.algorithm)
        logger.debug(
            "Signed %s URL for %s",
            request.method,
            address.path,
            extra={
                "bucket": resource.bucket,
                "object": resource.object_name,
                "action": request.action.value,
                "algorithm": self.credential.algorithm,
                "url_style": type(request.addressing).__name__,
            },
        )
        return SignedURL(url=url, signature=result.signature, query_params=result.query_params)

    def generate_signed_post_policy(self, policy_input: PolicyInput) -> PolicyDocument:
        """Sign a POST policy for a browser upload of ``policy_input.resource``.

        Raises:
            SigningError subclass: On any invalid input; nothing is signed.
        """
        resource = policy_input.resource
        try:
            document = sign_policy(
                policy_input,
                self.credential,
                location=self.config.location,
                service=self.config.service,
                endpoint=self.config.endpoint,
            )
        except SigningError as exc:
            metrics.record_error("policy", exc.code)
            logger.info(
                "Rejected POST policy request: %s",
                exc.message,
                extra={"bucket": resource.bucket, "error": exc.code},
            )
            raise

        metrics.record_signature("policy", self.credential.algorithm)
        logger.debug(
            "Signed POST policy for %s",
            resource.object_name,
            extra={
                "bucket": resource.bucket,
                "object": resource.object_name,
                "algorithm": self.credential.algorithm,
            },
        )
        return document
