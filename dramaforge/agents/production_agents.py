"""
Production Agent Implementations for DramaForge
Director breaks scripts into scenes; Visualizer and Motion write shot prompts.
"""

import json
from typing import Any, Dict, List, Optional

from ..core.errors import MalformedOutputError, ProviderError
from ..core.log import get_logger
from ..core.recovery import parse_json_value
from ..core.schema_validator import MOTION_SHAPE, SCENE_SHAPE, VISUALIZER_SHAPE, validate
from ..models import AgentRole, Shot
from ..prompts import DIRECTOR_SYSTEM_PROMPT, MOTION_SYSTEM_PROMPT, VISUALIZER_SYSTEM_PROMPT
from .base import BaseAgent, EventCallback, LLMClient

logger = get_logger(__name__)

VISUAL_GENERATION_FAILED = {"visualPrompt": "Failed to generate prompt."}
VISUAL_PARSE_FAILED = {"visualPrompt": "Failed to parse JSON."}
MOTION_GENERATION_FAILED = {"motionPrompt": "Failed to generate prompt."}
MOTION_PARSE_FAILED = {"motionPrompt": "Failed to parse JSON."}


class DirectorAgent(BaseAgent):
    """
    Director Agent - storyboard breakdown.
    Entries that fail the scene shape are dropped, unless all of them fail.
    """

    role = AgentRole.DIRECTOR

    def __init__(self, llm_client: LLMClient, temperature: float = 0.4, event_callback: Optional[EventCallback] = None):
        super().__init__(llm_client, DIRECTOR_SYSTEM_PROMPT, temperature, event_callback)

    @staticmethod
    def _scene_list(data: Any) -> Optional[List[Any]]:
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ("scenes", "data"):
                if isinstance(data.get(key), list):
                    return data[key]
        return None

    async def breakdown(self, script: str) -> List[Dict[str, Any]]:
        """Return scene dicts. Raises MalformedOutputError or ProviderError."""
        raw = await self._complete(self._messages(f"[Episode script]\n{script}"), json_mode=True, action="breakdown")
        try:
            data = parse_json_value(raw)
        except json.JSONDecodeError as e:
            raise MalformedOutputError(f"Director returned invalid JSON: {e}", raw=raw) from e

        scenes = self._scene_list(data)
        if scenes is None:
            raise MalformedOutputError("Director output holds no scene list", raw=raw)

        valid = []
        for i, scene in enumerate(scenes):
            result = validate(scene, SCENE_SHAPE, f"scenes[{i}]")
            if result.valid:
                valid.append(scene)
            else:
                logger.warning(f"[director.breakdown] dropping scene {i}: {result.errors[:3]}")

        if scenes and not valid:
            logger.warning(f"[director.breakdown] all {len(scenes)} scenes failed validation; keeping them unvalidated")
            return [s for s in scenes if isinstance(s, dict)]
        return valid


def _describe_shot(shot: Shot) -> str:
    return "\n".join([
        f"Shot type: {shot.shot_type}",
        f"Angle: {shot.angle}",
        f"Movement: {shot.movement}",
        f"Visual: {shot.visual}",
        f"Audio: {shot.audio}",
        f"Duration: {shot.duration}s",
    ])


class VisualizerAgent(BaseAgent):
    """Visualizer Agent - frame prompts for a shot. Failures yield placeholders."""

    role = AgentRole.VISUALIZER

    def __init__(self, llm_client: LLMClient, temperature: float = 0.6, event_callback: Optional[EventCallback] = None):
        super().__init__(llm_client, VISUALIZER_SYSTEM_PROMPT, temperature, event_callback)

    async def generate(self, shot: Shot, scene_summary: str = "", style_notes: str = "") -> Dict[str, Any]:
        parts = [f"[Shot]\n{_describe_shot(shot)}"]
        if scene_summary:
            parts.append(f"[Scene]\n{scene_summary}")
        if style_notes:
            parts.append(f"[World and characters]\n{style_notes}")
        try:
            raw = await self._complete(self._messages("\n\n".join(parts)), json_mode=True, action="visualize")
        except ProviderError:
            return dict(VISUAL_GENERATION_FAILED)

        try:
            data = parse_json_value(raw)
        except json.JSONDecodeError:
            logger.warning("[visualizer.generate] output is not JSON")
            return dict(VISUAL_PARSE_FAILED)
        if not isinstance(data, dict):
            return dict(VISUAL_PARSE_FAILED)

        result = validate(data, VISUALIZER_SHAPE)
        if not result.valid:
            logger.warning(f"[visualizer.generate] shape mismatch, keeping output: {result.errors}")
        return data


class MotionAgent(BaseAgent):
    """Motion Agent - video motion prompt for a shot. Failures yield placeholders."""

    role = AgentRole.MOTION

    def __init__(self, llm_client: LLMClient, temperature: float = 0.6, event_callback: Optional[EventCallback] = None):
        super().__init__(llm_client, MOTION_SYSTEM_PROMPT, temperature, event_callback)

    async def generate(self, visual_prompt: str, movement: str, duration: float = 0) -> Dict[str, Any]:
        prompt = f"[Visual prompt]\n{visual_prompt}\n\n[Camera movement]\n{movement}\n\n[Duration]\n{duration}s"
        try:
            raw = await self._complete(self._messages(prompt), json_mode=True, action="motion")
        except ProviderError:
            return dict(MOTION_GENERATION_FAILED)

        try:
            data = parse_json_value(raw)
        except json.JSONDecodeError:
            logger.warning("[motion.generate] output is not JSON")
            return dict(MOTION_PARSE_FAILED)
        if not isinstance(data, dict):
            return dict(MOTION_PARSE_FAILED)

        result = validate(data, MOTION_SHAPE)
        if not result.valid:
            logger.warning(f"[motion.generate] shape mismatch, keeping output: {result.errors}")
        return data
