import jwt
from typing import Dict, Any, Optional
import logging

from gymapp.core.config import JWT_SECRET_KEY, JWT_ALGORITHM
from gymapp.core.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


class JWTManager:
    """Verifies bearer tokens issued by the identity service"""

    def __init__(self, secret_key: Optional[str] = None, algorithm: str = JWT_ALGORITHM):
        self.secret_key = secret_key or JWT_SECRET_KEY
        self.algorithm = algorithm

    def _require_secret(self) -> str:
        if not self.secret_key:
            raise ConfigurationError("JWT_SECRET_KEY", "JWT secret is not configured")
        return self.secret_key

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify a token

        Raises:
            AuthenticationError: expired, malformed or missing the `id` claim
        """
        secret = self._require_secret()
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token has expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError:
            logger.warning("Invalid JWT token provided")
            raise AuthenticationError("Invalid token")

        if not payload.get("id"):
            raise AuthenticationError("Token does not identify a user")

        return payload


jwt_manager = JWTManager()
