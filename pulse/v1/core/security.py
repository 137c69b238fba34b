from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from pulse.config.settings import AuthMode, Settings, SettingsDep


@dataclass
class Principal:
    """Represents the subject a request acts on behalf of."""

    user_id: str
    roles: list[str]


async def get_principal(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    settings: Settings = SettingsDep,
) -> Principal:
    """
    Dependency injection function to get the current principal.

    Behavior based on AUTH_MODE:
    - none: Returns the dev user
    - dev: Trusts the X-User-ID header set by a fronting proxy
    """
    if settings.auth_mode == AuthMode.NONE:
        return Principal(user_id=settings.dev_user_id, roles=["admin"])
    elif settings.auth_mode == AuthMode.DEV:
        if not x_user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-User-ID header is required in dev auth mode",
            )
        return Principal(user_id=x_user_id, roles=["user"])
    else:
        raise ValueError(f"Unknown auth mode: {settings.auth_mode}")


# Convenience type alias for dependency injection
PrincipalDep = Depends(get_principal)
