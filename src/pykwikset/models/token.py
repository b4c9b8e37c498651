"""Session token triple."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CredentialRecord(BaseModel):
    """A point-in-time snapshot of a renewable Cognito session.

    Serialized with the camelCase keys ``idToken``, ``accessToken`` and
    ``refreshToken``.  Frozen: a refresh produces a new record, it never
    mutates an existing one.

    Parameters
    ----------
    id_token : str
        Cognito ID token, sent as the bearer credential to the REST API.
    access_token : str
        Cognito access token.
    refresh_token : str
        Long-lived token used to mint new ID/access tokens.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id_token: str = Field(alias="idToken", min_length=1)
    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: str = Field(alias="refreshToken", min_length=1)

    def with_refreshed(self, *, id_token: str, access_token: str, refresh_token: str | None = None) -> CredentialRecord:
        """Return a new record carrying refreshed tokens.

        Cognito does not rotate the refresh token on ``REFRESH_TOKEN_AUTH``,
        so the current one is kept unless a new one is supplied.
        """
        return CredentialRecord(
            id_token=id_token,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
        )
