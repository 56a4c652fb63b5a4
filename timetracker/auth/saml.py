# timetracker/auth/saml.py
"""
SAML client wrapper.

``OneLoginSamlClient`` adapts python3-saml to the small ``SamlClient``
surface the auth provider needs, so tests can substitute a fake client
without an identity provider.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from timetracker.core.config import Settings

logger = logging.getLogger(__name__)

FIRST_NAME_ATTRIBUTES = (
    "firstName", "givenName", "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/givenname",
)
LAST_NAME_ATTRIBUTES = (
    "lastName", "surname", "sn", "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/surname",
)


class SamlValidationError(Exception):
    pass


@dataclass
class SamlAssertion:
    name_id: Optional[str]
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    session_index: Optional[str] = None

    def first(self, names) -> Optional[str]:
        for name in names:
            values = self.attributes.get(name)
            if values:
                return values[0]
        return None

    @property
    def first_name(self) -> Optional[str]:
        return self.first(FIRST_NAME_ATTRIBUTES)

    @property
    def last_name(self) -> Optional[str]:
        return self.first(LAST_NAME_ATTRIBUTES)


class SamlClient(ABC):
    @abstractmethod
    def login_url(self, request_data: Dict[str, Any], relay_state: Optional[str] = None) -> str: ...

    @abstractmethod
    def process_response(self, request_data: Dict[str, Any]) -> SamlAssertion:
        """Validates the posted assertion; raises ``SamlValidationError`` when it is not acceptable."""

    @abstractmethod
    def metadata(self) -> str: ...

    @abstractmethod
    def logout_url(self, request_data: Dict[str, Any], name_id: Optional[str] = None,
                   session_index: Optional[str] = None) -> Optional[str]: ...


def build_saml_settings(settings: Settings) -> Dict[str, Any]:
    return {
        "strict": True,
        "debug": not settings.is_production,
        "sp": {
            "entityId": settings.SAML_ENTITY_ID,
            "assertionConsumerService": {
                "url": settings.SAML_ACS_URL,
                "binding": "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST",
            },
            "NameIDFormat": "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress",
        },
        "idp": {
            "entityId": settings.SAML_IDP_ENTITY_ID or settings.SAML_SSO_URL,
            "singleSignOnService": {
                "url": settings.SAML_SSO_URL,
                "binding": "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect",
            },
            "singleLogoutService": {
                "url": settings.SAML_SLO_URL or "",
                "binding": "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect",
            },
            "x509cert": settings.SAML_CERTIFICATE or "",
        },
        "security": {
            "wantAssertionsSigned": True,
            "wantMessagesSigned": False,
            "signatureAlgorithm": "http://www.w3.org/2001/04/xmldsig-more#rsa-sha256",
            "digestAlgorithm": "http://www.w3.org/2001/04/xmlenc#sha256",
        },
    }


class OneLoginSamlClient(SamlClient):
    def __init__(self, settings: Settings):
        self.saml_settings = build_saml_settings(settings)

    def _auth(self, request_data):
        from onelogin.saml2.auth import OneLogin_Saml2_Auth
        return OneLogin_Saml2_Auth(request_data, old_settings=self.saml_settings)

    def login_url(self, request_data, relay_state=None):
        return self._auth(request_data).login(return_to=relay_state)

    def process_response(self, request_data):
        auth = self._auth(request_data)
        auth.process_response()
        errors = auth.get_errors()
        if errors:
            logger.warning("SAML response rejected: %s (%s)", errors, auth.get_last_error_reason())
            raise SamlValidationError(", ".join(errors))
        if not auth.is_authenticated():
            raise SamlValidationError("assertion did not authenticate")
        return SamlAssertion(
            name_id=auth.get_nameid(),
            attributes=auth.get_attributes(),
            session_index=auth.get_session_index(),
        )

    def metadata(self):
        from onelogin.saml2.settings import OneLogin_Saml2_Settings
        saml_settings = OneLogin_Saml2_Settings(self.saml_settings, sp_validation_only=True)
        metadata = saml_settings.get_sp_metadata()
        errors = saml_settings.validate_metadata(metadata)
        if errors:
            raise SamlValidationError("invalid SP metadata: " + ", ".join(errors))
        return metadata.decode() if isinstance(metadata, bytes) else metadata

    def logout_url(self, request_data, name_id=None, session_index=None):
        if not self.saml_settings["idp"]["singleLogoutService"]["url"]:
            return None
        return self._auth(request_data).logout(return_to="/", name_id=name_id, session_index=session_index)
