from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, model_validator

from ...core.models import ActionKind, AnswerPolicy, JudgeMode
from .service import SessionManager

__all__ = ["AnswerRequest", "CreateSessionRequest", "SettingsUpdateRequest", "create_session_routers"]


class CreateSessionRequest(BaseModel):
    hands: list[str] | None = None
    review: bool = False

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, object] = dict(data)
        hands = cleaned.get("hands")
        if hands in (None, ""):
            cleaned["hands"] = None
        elif isinstance(hands, str):
            cleaned["hands"] = [token.strip() for token in hands.split(",") if token.strip()]
        return cleaned

    @model_validator(mode="after")
    def _normalize(self) -> CreateSessionRequest:
        if self.hands is not None:
            unique = list(dict.fromkeys(hand.strip() for hand in self.hands if hand.strip()))
            self.hands = unique or None
        return self


class AnswerRequest(BaseModel):
    answer: ActionKind

    @model_validator(mode="before")
    @classmethod
    def _upper(cls, data: object) -> object:
        if isinstance(data, dict) and isinstance(data.get("answer"), str):
            return {**data, "answer": data["answer"].strip().upper()}
        return data


class SettingsUpdateRequest(BaseModel):
    judge_mode: JudgeMode | None = None
    answer_policy: AnswerPolicy | None = None
    active_range_set_id: str | None = None
    active_scenario_id: str | None = None
    custom_scope_hands: list[str] | None = None
    haptic_feedback: bool | None = None

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True)


class _SessionController:
    def __init__(self, manager: SessionManager) -> None:
        self.manager = manager

    def _json_response(self, data: dict[str, object], status_code: int = 200) -> JSONResponse:
        return JSONResponse(data, status_code=status_code)

    # ------------------------------------------------------------------ actions
    async def create(self, body: CreateSessionRequest) -> Response:
        try:
            sid = await self.manager.start_async(body.hands, review=body.review)
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        payload = await self.manager.next_question_async(sid)
        return self._json_response(payload.to_dict(), status_code=201)

    async def question(self, sid: str) -> Response:
        try:
            payload = await self.manager.next_question_async(sid)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        return self._json_response(payload.to_dict())

    async def answer(self, sid: str, body: AnswerRequest) -> Response:
        try:
            result = await self.manager.answer_async(sid, body.answer)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        return self._json_response(result.to_dict())

    async def finish(self, sid: str) -> Response:
        try:
            session = await self.manager.finish_async(sid)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        return self._json_response(session.to_dict())

    async def abandon(self, sid: str) -> Response:
        try:
            await self.manager.abandon_async(sid)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        return Response(status_code=204)

    async def stats(self) -> Response:
        stats = await self.manager.stats_async()
        return self._json_response(stats.to_dict())

    async def weak_hands(self) -> Response:
        hands = await self.manager.weak_hands_async()
        return self._json_response({"hands": [h.hand for h in hands], "count": len(hands)})

    async def settings(self) -> Response:
        payload = await self.manager.settings_payload_async()
        return self._json_response(payload.to_dict())

    async def update_settings(self, body: SettingsUpdateRequest) -> Response:
        try:
            payload = await self.manager.update_settings_async(**body.changes())
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        return self._json_response(payload.to_dict())


def create_session_routers(manager: SessionManager) -> tuple[APIRouter, APIRouter]:
    """Return ``(session_router, insights_router)`` bound to ``manager``."""

    controller = _SessionController(manager)

    sessions = APIRouter(prefix="/api/v1/session", tags=["session"])
    insights = APIRouter(prefix="/api/v1", tags=["stats"])

    @sessions.post("")
    async def create_session(body: CreateSessionRequest) -> Response:
        return await controller.create(body)

    @sessions.get("/{sid}/question")
    async def get_question(sid: str) -> Response:
        return await controller.question(sid)

    @sessions.post("/{sid}/answer")
    async def post_answer(sid: str, body: AnswerRequest) -> Response:
        return await controller.answer(sid, body)

    @sessions.post("/{sid}/finish")
    async def post_finish(sid: str) -> Response:
        return await controller.finish(sid)

    @sessions.delete("/{sid}")
    async def delete_session(sid: str) -> Response:
        return await controller.abandon(sid)

    @insights.get("/stats")
    async def get_stats() -> Response:
        return await controller.stats()

    @insights.get("/stats/weak-hands")
    async def get_weak_hands() -> Response:
        return await controller.weak_hands()

    @insights.get("/settings")
    async def get_settings() -> Response:
        return await controller.settings()

    @insights.put("/settings")
    async def put_settings(body: SettingsUpdateRequest) -> Response:
        return await controller.update_settings(body)

    return sessions, insights
