"""
Unit tests for the agent roles, driven by a scripted fake LLM client.

Tests cover:
- BaseAgent JSON-mode retry, error classification and events
- Writer streaming
- Aligner verdicts, AutoFixer tag extraction
- Summarizer, IntentAnalyzer and ContentExtractor fallbacks
- BackgroundChecker normalization
- Director, Visualizer and Motion output handling
"""

import json
import logging

import pytest

from dramaforge.agents import (
    AlignerAgent,
    AutoFixerAgent,
    BackgroundCheckerAgent,
    ContentExtractorAgent,
    DirectorAgent,
    GENERIC_TASK_LABEL,
    IntentAnalyzerAgent,
    MOTION_GENERATION_FAILED,
    MotionAgent,
    SummarizerAgent,
    VISUAL_PARSE_FAILED,
    VisualizerAgent,
    WriterAgent,
    is_aligner_pass,
)
from dramaforge.core.context import ProjectContext, estimate_tokens
from dramaforge.core.errors import MalformedOutputError, ProviderError
from dramaforge.models import (
    ActivityLog,
    ActivityStatus,
    AgentRole,
    ErrorKind,
    Message,
    MessageRole,
    Shot,
    Stage,
)


def _scene(**overrides):
    scene = {
        "location": "Bell tower",
        "summary": "Mara rings the drowned bell",
        "shots": [{
            "shotType": "Close-up",
            "angle": "Low",
            "movement": "Push in",
            "visual": "Mara's hand on the rope",
            "audio": "Bell toll",
            "duration": 3,
        }],
    }
    scene.update(overrides)
    return scene


class TestBaseAgent:
    """Tests for shared agent behaviour."""

    @pytest.mark.asyncio
    async def test_json_mode_rejection_is_retried_once(self, fake_llm):
        """Test a rejected JSON-mode request is retried without the hint."""
        fake_llm.queue(RuntimeError("response_format is not supported"), '{"hasSaveIntent": true}')
        agent = IntentAnalyzerAgent(fake_llm)

        result = await agent.analyze([Message(role=MessageRole.USER, content="save it")], Stage.WORLD)

        assert result.has_save_intent is True
        assert [c["json_mode"] for c in fake_llm.calls] == [True, False]

    @pytest.mark.asyncio
    async def test_provider_error_is_classified(self, fake_llm):
        """Test a plain-mode failure surfaces as a classified ProviderError."""
        fake_llm.queue(RuntimeError("401 Unauthorized"))
        agent = AutoFixerAgent(fake_llm)

        with pytest.raises(ProviderError) as exc_info:
            await agent.fix("draft", "feedback", "world.md", ProjectContext())

        assert exc_info.value.kind == ErrorKind.UNAUTHORIZED
        assert len(fake_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_events_are_emitted(self, fake_llm):
        """Test each call reports an AgentEvent."""
        events = []
        fake_llm.queue("Drafted the world")
        agent = SummarizerAgent(fake_llm, event_callback=events.append)

        await agent.summarize([Message(role=MessageRole.USER, content="Write the world")])

        assert len(events) == 1
        assert events[0].agent_name == AgentRole.SUMMARIZER.value
        assert events[0].action == "summarize"
        assert events[0].success is True


class TestWriterAgent:
    """Tests for the streaming Writer."""

    @pytest.mark.asyncio
    async def test_stream_and_parse(self, fake_llm):
        """Test chunks are passed through and the reply parses."""
        fake_llm.queue_stream(['{"type": "chat", ', '"message": "Which era?"}'])
        agent = WriterAgent(fake_llm)

        response = await agent.reply([], "Start a world", ProjectContext(world="Tides"), "[Current stage] World Building")

        assert response.message == "Which era?"
        messages = fake_llm.calls[0]["messages"]
        assert messages[0]["role"] == "system"
        assert "=== WORLD ===" in messages[0]["content"]
        assert "[Current stage] World Building" in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "Start a world"}

    @pytest.mark.asyncio
    async def test_stream_retries_json_mode_before_first_chunk(self, fake_llm):
        """Test a stream rejected up front is retried without JSON mode."""
        fake_llm.queue_stream(RuntimeError("json mode unsupported"), ['{"message": "ok"}'])
        agent = WriterAgent(fake_llm)

        chunks = [c async for c in agent.stream_reply([], "hi", ProjectContext())]

        assert chunks == ['{"message": "ok"}']
        assert [c["json_mode"] for c in fake_llm.calls] == [True, False]

    @pytest.mark.asyncio
    async def test_history_is_windowed(self, fake_llm):
        """Test prior messages are included in chronological order."""
        fake_llm.queue_stream(['{"message": "ok"}'])
        agent = WriterAgent(fake_llm)
        history = [
            Message(role=MessageRole.USER, content="first"),
            Message(role=MessageRole.ASSISTANT, content="second"),
        ]

        await agent.reply(history, "third", ProjectContext())

        roles = [(m["role"], m["content"]) for m in fake_llm.calls[0]["messages"][1:]]
        assert roles == [("user", "first"), ("assistant", "second"), ("user", "third")]

    def test_prompt_size_is_logged(self, fake_llm, caplog):
        """Test building the messages logs the history kept and the estimated prompt tokens."""
        agent = WriterAgent(fake_llm, max_total_chars=100000, reserved_for_output=0)
        history = [Message(role=MessageRole.USER, content="first")]

        with caplog.at_level(logging.INFO, logger="dramaforge"):
            messages = agent.build_messages(history, "second", ProjectContext())

        expected = estimate_tokens("".join(m["content"] for m in messages))
        assert f"[writer.build_messages] 1/1 history messages, ~{expected} tokens" in caplog.text


class TestAligner:
    """Tests for the Aligner and its verdict."""

    def test_verdict(self):
        """Test the canonical marker and the substring fallback."""
        assert is_aligner_pass("Looks good.\nCHECK STATUS: PASS")
        assert is_aligner_pass("pass")
        assert not is_aligner_pass("CHECK STATUS: FAIL\n- age mismatch")
        assert not is_aligner_pass("PASS on tone but FAIL on ages")
        assert not is_aligner_pass("")

    @pytest.mark.asyncio
    async def test_check_pass(self, fake_llm):
        """Test a passing report."""
        fake_llm.queue("CHECK STATUS: PASS")
        result = await AlignerAgent(fake_llm).check("Mara, 30", "characters.md", ProjectContext(world="Tides"))
        assert result.passed is True
        assert result.error_kind is None

    @pytest.mark.asyncio
    async def test_check_sees_previous_episodes(self, fake_llm):
        """Test earlier scripts are part of the consistency prompt."""
        fake_llm.queue("CHECK STATUS: FAIL\n- Mara died in EP-01")
        result = await AlignerAgent(fake_llm).check(
            "Mara walks in", "episodes/EP-02.md", ProjectContext(), previous_episodes="Mara dies."
        )
        assert result.passed is False
        assert "Mara died" in result.feedback
        assert "[Previous episodes]\nMara dies." in fake_llm.calls[0]["messages"][-1]["content"]

    @pytest.mark.asyncio
    async def test_provider_failure_is_reported_not_raised(self, fake_llm):
        """Test a provider failure comes back as a failed result with its kind."""
        fake_llm.queue(RuntimeError("Rate limit exceeded"))
        result = await AlignerAgent(fake_llm).check("x", "world.md", ProjectContext())
        assert result.passed is False
        assert result.error_kind == ErrorKind.RATE_LIMITED


class TestAutoFixer:
    """Tests for the AutoFixer."""

    @pytest.mark.asyncio
    async def test_reads_tagged_content(self, fake_llm):
        """Test the revision is read from the fixed_content tags."""
        fake_llm.queue("Changed the age.\n<fixed_content>\nMara, 30\n</fixed_content>\nDone.")
        fixed = await AutoFixerAgent(fake_llm).fix("Mara, 25", "age", "characters.md", ProjectContext())
        assert fixed == "Mara, 30"

    @pytest.mark.asyncio
    async def test_untagged_output_is_used_raw(self, fake_llm):
        """Test output without tags is used as the revision."""
        fake_llm.queue("  Mara, 30  ")
        fixed = await AutoFixerAgent(fake_llm).fix("Mara, 25", "age", "characters.md", ProjectContext())
        assert fixed == "Mara, 30"


class TestSummarizer:
    """Tests for the Summarizer."""

    @pytest.mark.asyncio
    async def test_label_is_cleaned(self, fake_llm):
        """Test quotes and whitespace are stripped from the label."""
        fake_llm.queue('  "Brainstormed the tide cult"\n')
        label = await SummarizerAgent(fake_llm).summarize([Message(role=MessageRole.USER, content="ideas?")])
        assert label == "Brainstormed the tide cult"

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_generic_label(self, fake_llm):
        """Test a provider failure never escapes."""
        fake_llm.queue(RuntimeError("boom"))
        label = await SummarizerAgent(fake_llm).summarize([Message(role=MessageRole.USER, content="ideas?")])
        assert label == GENERIC_TASK_LABEL

    @pytest.mark.asyncio
    async def test_empty_conversation(self, fake_llm):
        """Test no conversation means no call."""
        assert await SummarizerAgent(fake_llm).summarize([]) == GENERIC_TASK_LABEL
        assert fake_llm.calls == []


class TestIntentAnalyzer:
    """Tests for the IntentAnalyzer."""

    @pytest.mark.asyncio
    async def test_save_intent_with_target(self, fake_llm):
        """Test a save intent and its target file are returned."""
        fake_llm.queue('{"hasSaveIntent": true, "targetFile": "characters.md", "reason": "user approved"}')
        result = await IntentAnalyzerAgent(fake_llm).analyze(
            [Message(role=MessageRole.USER, content="Looks great, save it")], Stage.CHARACTERS, "characters.md"
        )
        assert result.has_save_intent is True
        assert result.target_file == "characters.md"

    @pytest.mark.asyncio
    async def test_invalid_shape_means_no_intent(self, fake_llm):
        """Test output failing the shape check is treated as no intent."""
        fake_llm.queue('{"hasSaveIntent": "yes"}')
        result = await IntentAnalyzerAgent(fake_llm).analyze([], Stage.WORLD)
        assert result.has_save_intent is False

    @pytest.mark.asyncio
    async def test_only_recent_messages_are_sent(self, fake_llm):
        """Test the analyzer sees the last few messages, with activity logs rendered."""
        fake_llm.queue('{"hasSaveIntent": false}')
        messages = [Message(role=MessageRole.USER, content=f"msg {i}") for i in range(6)]
        messages.append(Message(
            role=MessageRole.SYSTEM,
            content="Saved world.md",
            activity_log=ActivityLog(
                agent=AgentRole.ALIGNER, status=ActivityStatus.SUCCESS, task="Saved world.md", logs=["Attempt 1/5"]
            ),
        ))

        await IntentAnalyzerAgent(fake_llm, window=4).analyze(messages, Stage.WORLD)

        prompt = fake_llm.calls[0]["messages"][-1]["content"]
        assert "msg 2" not in prompt
        assert "msg 3" in prompt
        assert "System Log: [success] Saved world.md (Logs: Attempt 1/5)" in prompt


class TestContentExtractor:
    """Tests for the ContentExtractor."""

    @pytest.mark.asyncio
    async def test_outer_fence_is_removed(self, fake_llm):
        """Test a fenced document is unwrapped."""
        fake_llm.queue("```markdown\n# World\n\nA drowned city.\n```")
        content = await ContentExtractorAgent(fake_llm).extract(
            [Message(role=MessageRole.ASSISTANT, content="Here is the world")], "world.md"
        )
        assert content == "# World\n\nA drowned city."

    @pytest.mark.asyncio
    async def test_failure_yields_empty_string(self, fake_llm):
        """Test a provider failure returns nothing to save."""
        fake_llm.queue(RuntimeError("network down"))
        assert await ContentExtractorAgent(fake_llm).extract([], "world.md") == ""


class TestBackgroundChecker:
    """Tests for the BackgroundChecker."""

    @pytest.mark.asyncio
    async def test_issues_are_normalized(self, fake_llm):
        """Test unknown issue types and severities fall back to safe values."""
        fake_llm.queue(json.dumps({
            "pass": False,
            "summary": "One conflict",
            "issues": [{"type": "timeline", "severity": "critical", "description": "Dates clash"}],
        }))
        result = await BackgroundCheckerAgent(fake_llm).check("Tides", "Mara", "Acts")

        assert result.passed is False
        assert result.issues[0].type == "consistency"
        assert result.issues[0].severity == "warning"

    @pytest.mark.asyncio
    async def test_documents_are_capped(self, fake_llm):
        """Test each document is cut to the per-document limit."""
        fake_llm.queue('{"pass": true, "summary": "ok", "issues": []}')
        result = await BackgroundCheckerAgent(fake_llm, doc_limit=10).check("w" * 50, "c", "o")
        assert result.passed is True
        assert "w" * 11 not in fake_llm.calls[0]["messages"][-1]["content"]

    @pytest.mark.asyncio
    async def test_garbage_fails_closed(self, fake_llm):
        """Test unparsable output is a failed check, not an exception."""
        fake_llm.queue("I think it is fine!")
        result = await BackgroundCheckerAgent(fake_llm).check("w", "c", "o")
        assert result.passed is False
        assert result.issues == []
        assert result.summary.startswith("Background check failed due to a system error")


class TestDirector:
    """Tests for the Director."""

    @pytest.mark.asyncio
    async def test_wrapped_scene_list(self, fake_llm):
        """Test scenes under a "scenes" key are accepted."""
        fake_llm.queue(json.dumps({"scenes": [_scene()]}))
        scenes = await DirectorAgent(fake_llm).breakdown("INT. BELL TOWER")
        assert len(scenes) == 1
        assert scenes[0]["location"] == "Bell tower"

    @pytest.mark.asyncio
    async def test_invalid_scenes_are_dropped(self, fake_llm):
        """Test a scene failing the shape check is removed."""
        fake_llm.queue(json.dumps([_scene(), {"location": "Nowhere"}]))
        scenes = await DirectorAgent(fake_llm).breakdown("script")
        assert len(scenes) == 1

    @pytest.mark.asyncio
    async def test_all_invalid_are_kept(self, fake_llm):
        """Test unvalidated scenes are kept when none pass."""
        fake_llm.queue(json.dumps([{"location": "Nowhere"}]))
        scenes = await DirectorAgent(fake_llm).breakdown("script")
        assert scenes == [{"location": "Nowhere"}]

    @pytest.mark.asyncio
    async def test_unparsable_output_raises(self, fake_llm):
        """Test prose output raises MalformedOutputError."""
        fake_llm.queue("Sorry, I cannot do that.")
        with pytest.raises(MalformedOutputError):
            await DirectorAgent(fake_llm).breakdown("script")


class TestShotPromptAgents:
    """Tests for the Visualizer and Motion agents."""

    @pytest.mark.asyncio
    async def test_visualizer_returns_prompts(self, fake_llm):
        """Test the visual prompt dict is returned."""
        fake_llm.queue('{"visualPrompt": "low angle, wet stone", "isKeyframe": true}')
        shot = Shot.model_validate(_scene()["shots"][0])
        result = await VisualizerAgent(fake_llm).generate(shot, "Mara rings the bell", "Tides")
        assert result["visualPrompt"] == "low angle, wet stone"
        assert "Shot type: Close-up" in fake_llm.calls[0]["messages"][-1]["content"]

    @pytest.mark.asyncio
    async def test_visualizer_parse_failure_placeholder(self, fake_llm):
        """Test unparsable output yields the parse placeholder."""
        fake_llm.queue("a moody picture")
        result = await VisualizerAgent(fake_llm).generate(Shot())
        assert result == VISUAL_PARSE_FAILED

    @pytest.mark.asyncio
    async def test_motion_generation_failure_placeholder(self, fake_llm):
        """Test a provider failure yields the generation placeholder."""
        fake_llm.queue(RuntimeError("boom"), RuntimeError("boom"))
        result = await MotionAgent(fake_llm).generate("low angle", "Push in", 3)
        assert result == MOTION_GENERATION_FAILED
