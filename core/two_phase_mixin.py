"""
Two-Phase Operation Mixin.

Destructive operations (bulk row deletion) run as preview → confirm:
the preview computes what would change and parks it behind a token; the
confirm call executes exactly what was previewed.

Usage:
    class MyHandler(BaseHandler, TwoPhaseOperationMixin):
        def cleanup(self, confirm_token=None):
            return self.two_phase(
                op="tasks.cleanup",
                cache_prefix="cleanup",
                scope=self.store.sheet_id,
                confirm_token=confirm_token,
                build_preview=lambda: (payload, preview_data),
                execute=lambda payload: {...},
            )
"""
from __future__ import annotations

from typing import Any, Callable, Protocol, TypedDict

from lib.errors import ErrorCode, SyncError


class PreviewCacheProtocol(Protocol):
    """Protocol for preview cache interface."""

    ttl_seconds: int

    def store(self, prefix: str, data: dict) -> str:
        ...

    def pop(self, prefix: str, token: str) -> dict | None:
        ...


class ErrorInfo(TypedDict):
    """Error information for validation failures."""

    code: str
    message: str


class ValidateResult(TypedDict, total=False):
    """Result of confirm token validation."""

    valid: bool
    payload: dict[str, Any]
    error: ErrorInfo


class TwoPhaseOperationMixin:
    """
    Mixin for two-phase (preview → confirm) operations.

    Requires:
    - self._preview_cache: PreviewCache instance
    - self._ok(op, data) / self._error(op, code, message) / self._fail(op, exc)
    """

    _preview_cache: PreviewCacheProtocol

    def _ok(self, op: str, data: dict[str, Any]) -> dict[str, Any]:
        """Override in subclass or inherit from BaseHandler."""
        raise NotImplementedError

    def _error(
        self, op: str, code: str, message: str, extra: dict | None = None
    ) -> dict[str, Any]:
        """Override in subclass or inherit from BaseHandler."""
        raise NotImplementedError

    def _fail(self, op: str, exc: SyncError) -> dict[str, Any]:
        """Override in subclass or inherit from BaseHandler."""
        raise NotImplementedError

    # === Preview Phase ===

    def store_preview(
        self,
        op: str,
        cache_prefix: str,
        scope: str,
        payload: dict[str, Any],
        preview_data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Park the payload behind a token and return the preview response.

        Args:
            op: Operation name (e.g., "tasks.cleanup")
            cache_prefix: Cache prefix for token storage
            scope: What the token is bound to (the sheet id)
            payload: Data the confirm phase will execute
            preview_data: Data shown to the caller

        Returns:
            Response with requires_confirmation, confirm_token, preview
        """
        token = self._preview_cache.store(cache_prefix, {"scope": str(scope), **payload})
        return self._ok(op, {
            "requires_confirmation": True,
            "preview": preview_data,
            "confirm_token": token,
            "expires_in_seconds": self._preview_cache.ttl_seconds,
        })

    # === Confirm Phase ===

    def validate_confirm(
        self,
        cache_prefix: str,
        scope: str,
        confirm_token: str,
    ) -> ValidateResult:
        """
        Redeem a token. Tokens are single use.

        Returns:
            ValidateResult with valid=True and payload, or valid=False and error
        """
        cached = self._preview_cache.pop(cache_prefix, confirm_token)
        if not cached:
            return ValidateResult(
                valid=False,
                error=ErrorInfo(
                    code=ErrorCode.CONFIRM_EXPIRED.value,
                    message="confirm_token is invalid or expired",
                ),
            )

        if str(cached.get("scope", "")) != str(scope):
            return ValidateResult(
                valid=False,
                error=ErrorInfo(
                    code=ErrorCode.CONFIRM_MISMATCH.value,
                    message="confirm_token was issued for a different sheet",
                ),
            )

        payload = {k: v for k, v in cached.items() if k != "scope"}
        return ValidateResult(valid=True, payload=payload)

    # === Orchestration ===

    def two_phase(
        self,
        op: str,
        cache_prefix: str,
        scope: str,
        confirm_token: str | None,
        build_preview: Callable[[], tuple[dict[str, Any], dict[str, Any]]],
        execute: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> dict[str, Any]:
        """
        Preview when no token is given, otherwise execute the stored payload.

        Args:
            op: Operation name
            cache_prefix: Cache prefix
            scope: Token binding
            confirm_token: None for preview, token for confirm
            build_preview: Callable returning (payload, preview_data)
            execute: Callable taking the payload and returning result data

        Returns:
            Preview response, execution result, or error response
        """
        try:
            if not confirm_token:
                payload, preview_data = build_preview()
                return self.store_preview(op, cache_prefix, scope, payload, preview_data)

            result = self.validate_confirm(cache_prefix, scope, confirm_token)
            if not result["valid"]:
                err = result["error"]
                return self._error(op, err["code"], err["message"])

            return self._ok(op, execute(result["payload"]))
        except SyncError as e:
            return self._fail(op, e)
