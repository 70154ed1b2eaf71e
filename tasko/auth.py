"""Authentication flows for the Tasko API."""

import logging
from typing import Any, Dict, Optional

from rich.console import Console

from tasko.api import AuthApi, UserApi
from tasko.api_client import ApiError
from tasko.models import Profile
from tasko.session import SessionProvider

console = Console()
logger = logging.getLogger(__name__)


async def _establish_from_response(provider: SessionProvider, response: Optional[Dict[str, Any]]) -> Profile:
    """
    Turn a login/registration response into the current session.

    Raises:
        RuntimeError: If the response has no token or no usable user profile
    """
    if not isinstance(response, dict):
        raise RuntimeError("The server returned an unexpected login response.")

    token = response.get("accessToken")
    profile = Profile.from_dict(response.get("user"))
    if not token or profile is None:
        raise RuntimeError("The server returned an unexpected login response.")

    await provider.establish_session(token, profile, refresh_token=response.get("refreshToken"))
    return profile


async def login(api: AuthApi, provider: SessionProvider, email: str, password: str) -> Profile:
    """
    Log in with email and password and store the session.

    Returns:
        Profile of the logged in user

    Raises:
        ApiError: If the server rejects the credentials
        RuntimeError: If the server response is malformed
    """
    response = await api.login(email, password)
    profile = await _establish_from_response(provider, response)
    console.print(f"[green]✓ Successfully logged in as {profile.username} ({profile.email})[/green]")
    return profile


async def register(api: AuthApi, provider: SessionProvider, email: str, username: str, password: str) -> Profile:
    """
    Create an account and log in with it.

    Returns:
        Profile of the new user

    Raises:
        ApiError: If the server rejects the registration (e.g. email taken)
        RuntimeError: If the server response is malformed
    """
    response = await api.register(email, username, password)
    profile = await _establish_from_response(provider, response)
    console.print(f"[green]✓ Account created and logged in as {profile.username}[/green]")
    return profile


async def logout(api: AuthApi, provider: SessionProvider) -> bool:
    """
    Log out the current user by revoking the refresh token and clearing the session.

    The local session is cleared even when the server cannot be reached.

    Returns:
        True if there was a session to clear, False otherwise
    """
    if not provider.is_authenticated:
        console.print("[yellow]No active session found.[/yellow]")
        return False

    refresh_token = provider.session.refresh_token
    if refresh_token:
        try:
            await api.logout(refresh_token)
        except ApiError as e:
            logger.warning("Could not revoke the refresh token: %s", e.message)

    await provider.clear_session()
    console.print("[green]✓ Successfully logged out[/green]")
    return True


async def refresh_profile(api: AuthApi, provider: SessionProvider) -> Profile:
    """
    Fetch the current user from the server and store the updated profile.

    Raises:
        ApiError: If the request fails (a 401 also clears the session)
        RuntimeError: If not logged in or the response is malformed
    """
    if not provider.is_authenticated:
        raise RuntimeError("Not logged in. Run 'tasko auth login' first.")

    profile = Profile.from_dict(await api.me())
    if profile is None:
        raise RuntimeError("The server returned an unexpected profile.")

    if profile != provider.profile:
        await provider.establish_session(provider.token, profile, refresh_token=provider.session.refresh_token)
    return profile


async def refresh_tokens(api: AuthApi, provider: SessionProvider) -> str:
    """
    Get a new access token with the stored refresh token.

    The profile is kept; only the tokens change.

    Returns:
        The new access token

    Raises:
        ApiError: If the server rejects the refresh token
        RuntimeError: If not logged in, there is no refresh token, or the
                      response is malformed
    """
    if not provider.is_authenticated:
        raise RuntimeError("Not logged in. Run 'tasko auth login' first.")

    refresh_token = provider.session.refresh_token
    if not refresh_token:
        raise RuntimeError("This session has no refresh token. Log in again to get one.")

    response = await api.refresh(refresh_token)
    token = response.get("accessToken") if isinstance(response, dict) else None
    if not token:
        raise RuntimeError("The server returned an unexpected token response.")

    await provider.establish_session(
        token,
        provider.profile,
        refresh_token=response.get("refreshToken") or refresh_token,
    )
    return token


async def update_profile(
    api: UserApi,
    provider: SessionProvider,
    username: Optional[str] = None,
    email: Optional[str] = None,
    old_password: Optional[str] = None,
    new_password: Optional[str] = None,
) -> Profile:
    """
    Change the logged in user's account and store the new profile.

    Raises:
        ApiError: If the server rejects the change (e.g. wrong old password)
        RuntimeError: If not logged in or the response is malformed
    """
    if not provider.is_authenticated:
        raise RuntimeError("Not logged in. Run 'tasko auth login' first.")

    response = await api.update(
        provider.profile.id,
        username=username,
        email=email,
        old_password=old_password,
        new_password=new_password,
    )
    profile = Profile.from_dict(response)
    if profile is None:
        raise RuntimeError("The server returned an unexpected profile.")

    if profile != provider.profile:
        await provider.establish_session(provider.token, profile, refresh_token=provider.session.refresh_token)
    console.print(f"[green]✓ Account updated ({profile.username}, {profile.email})[/green]")
    return profile
