"""
DramaForge - Console Entry Point
Interactive chat loop over one project in the file store.
"""

import asyncio
import sys
from typing import Optional

from dotenv import load_dotenv

from .agents import build_agent_suite
from .config import create_default_config_from_env, create_workflow_settings_from_env
from .core.episodes import AdvanceDecision, AdvanceKind
from .core.errors import DramaForgeError, MissingCredentialsError, ProviderError, TurnInProgressError
from .core.log import get_logger
from .core.workflow import ProjectWorkflow, SaveResult, TurnResult
from .models import AgentRole, AutoFixAction, Project, Session, Stage
from .services import FileDocumentStore, FileProjectStore, FileSessionStore

# Load environment variables
load_dotenv()

logger = get_logger(__name__)

HELP = """Commands:
  /lock             run the background check and lock world/characters/outline
  /fork             copy this project's planning documents into a new project
  /episodes         show episode progress
  /director EP-01   break an episode script into scenes
  /shots EP-01      generate visual and motion prompts for an episode
  /fix              retry the last failed save with one AutoFixer pass
  /next             open the next episode offered after a finished script
  /stage <name>     switch to an unlocked stage (world, characters, outline, production)
  /file <name>      set the open file (world, characters, outline, EP-02, ...)
  /new              start a new chat session
  /quit             exit"""


class DramaForgeConsole:
    """Line-oriented front end over ProjectWorkflow."""

    def __init__(self, workflow: ProjectWorkflow):
        self.workflow = workflow
        self.project: Optional[Project] = None
        self.session: Optional[Session] = None
        self.current_file: Optional[str] = None
        self.pending_fix: Optional[AutoFixAction] = None
        self.pending_advance: Optional[AdvanceDecision] = None
        self._partial_len = 0

    async def open_project(self) -> None:
        projects = await self.workflow.projects.list()
        if projects:
            print("Projects:")
            for i, project in enumerate(projects, start=1):
                lock = " [locked]" if project.is_background_locked else ""
                print(f"  {i}. {project.name} ({project.current_stage.value}){lock}")
        choice = (await self._ask("Open project # (or a new name): ")).strip()

        if choice.isdigit() and 1 <= int(choice) <= len(projects):
            self.project = projects[int(choice) - 1]
        else:
            self.project = await self.workflow.create_project(choice or "Untitled Drama")
            print(f"Created project '{self.project.name}'")

        self.session = await self.workflow.load_latest_session(self.project.id)
        if self.session is None:
            self.session = await self.workflow.new_session(self.project.id)
        print(f"Session: {self.session.title} ({len(self.session.messages)} messages)")

    @staticmethod
    async def _ask(prompt: str) -> str:
        return await asyncio.to_thread(input, prompt)

    def _on_partial(self, text: str) -> None:
        # Partial text only grows once the message value is being read
        if text.startswith("Thinking") or len(text) < self._partial_len:
            return
        sys.stdout.write(text[self._partial_len:])
        sys.stdout.flush()
        self._partial_len = len(text)

    def _print_save(self, save: SaveResult) -> None:
        outcome = save.outcome
        for line in outcome.logs:
            print(f"  | {line}")
        if outcome.saved:
            print(f"Saved {outcome.target_file} after {outcome.attempts} check(s)")
        else:
            print(f"Not saved ({outcome.status.value}): {outcome.feedback or outcome.target_file}")
        if outcome.action is not None:
            self.pending_fix = outcome.action
            print("Type /fix to try one more automatic repair.")

        effects = save.effects
        if effects.stage_change is not None:
            new_stage, old_stage = effects.stage_change
            print(f"Stage: {old_stage.value} -> {new_stage.value}")
        if effects.advance is not None and effects.advance.kind == AdvanceKind.PROMPT:
            self.pending_advance = effects.advance
            print(f"Script complete. Type /next to continue with {effects.advance.next_episode_id}.")
        if effects.opened_file:
            self.current_file = effects.opened_file
            print(f"Now editing {effects.opened_file}")

    def _print_turn(self, result: TurnResult) -> None:
        if result.error_message:
            print(f"Error: {result.error_message}")
            return
        if self._partial_len == 0 and result.response is not None:
            print(result.response.message, end="")
        print()
        if result.save is not None:
            self._print_save(result.save)

    async def handle_command(self, line: str) -> bool:
        """Run a slash command. Returns False when the loop should stop."""
        command, _, arg = line.partition(" ")
        arg = arg.strip()
        project_id = self.project.id

        if command == "/quit":
            return False
        if command == "/help":
            print(HELP)
        elif command == "/new":
            self.session = await self.workflow.new_session(project_id)
            print("Started a new chat session")
        elif command == "/file":
            self.current_file = arg or None
            print(f"Open file: {self.current_file or '(none)'}")
        elif command == "/lock":
            result = await self.workflow.lock_background(project_id)
            print(("PASSED: " if result.passed else "FAILED: ") + result.summary)
            for issue in result.issues:
                print(f"  - [{issue.severity}] {issue.type}: {issue.description}")
                if issue.suggestion:
                    print(f"    suggestion: {issue.suggestion}")
            self.project = await self.workflow.get_project(project_id)
        elif command == "/fork":
            fork = await self.workflow.fork_project(project_id)
            print(f"Forked into '{fork.name}' at stage {fork.current_stage.value}")
        elif command == "/episodes":
            for episode in await self.workflow.episode_progress(project_id):
                lock = " [locked]" if episode.is_locked else ""
                print(f"  {episode.episode_id} {episode.title or '(untitled)'}: "
                      f"{episode.status.value}, {episode.script_length} chars, {episode.scene_count} scene(s){lock}")
        elif command == "/director":
            scenes = await self.workflow.run_director(project_id, arg or "EP-01")
            print(f"Director produced {len(scenes)} scene(s)")
        elif command == "/shots":
            scenes = await self.workflow.regenerate_shot_prompts(project_id, arg or "EP-01")
            shots = sum(len(scene.get("shots") or []) for scene in scenes if isinstance(scene, dict))
            print(f"Generated prompts for {shots} shot(s)")
        elif command == "/next":
            if self.pending_advance is None:
                print("No episode is waiting")
            else:
                decision, self.pending_advance = self.pending_advance, None
                self.current_file = await self.workflow.confirm_advance(project_id, decision)
                print(f"Now editing {self.current_file}")
        elif command == "/stage":
            if await self.workflow.enter_stage(project_id, Stage(arg.lower())):
                self.current_file = None
            self.project = await self.workflow.get_project(project_id)
            print(f"Stage: {self.project.current_stage.value}")
        elif command == "/fix":
            if self.pending_fix is None:
                print("Nothing to fix")
            else:
                action, self.pending_fix = self.pending_fix, None
                self._print_save(await self.workflow.apply_auto_fix(project_id, action, self.session.id))
        else:
            print(HELP)
        return True

    async def run(self) -> None:
        await self.open_project()
        print(HELP)
        while True:
            try:
                line = (await self._ask("> ")).strip()
            except EOFError:
                break
            if not line:
                continue
            try:
                if line.startswith("/"):
                    if not await self.handle_command(line):
                        break
                    continue
                self._partial_len = 0
                result = await self.workflow.send_message(
                    self.project.id, self.session.id, line, self.current_file, self._on_partial
                )
                self.session = result.session
                self._print_turn(result)
            except TurnInProgressError:
                print("A reply is still being generated")
            except (DramaForgeError, ValueError) as e:
                logger.warning(f"[console] {e}")
                print(f"Error: {e.user_message if isinstance(e, ProviderError) else e}")


async def main():
    """Main entry point."""
    config = create_default_config_from_env()
    settings = create_workflow_settings_from_env()

    errors = config.validate_agent_models()
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        return

    try:
        agents = build_agent_suite(config, settings)
    except MissingCredentialsError as e:
        print(f"Missing credentials: {e}")
        return

    workflow = ProjectWorkflow(
        agents,
        FileDocumentStore(settings.data_dir),
        FileProjectStore(settings.data_dir),
        FileSessionStore(settings.data_dir),
        settings,
    )
    print(f"Enabled providers: {[p.value for p in config.get_enabled_providers()]}")
    writer = config.agent_models.for_role(AgentRole.WRITER)
    print(f"Writer model: {config.get_provider_config(writer.provider).model_label(writer.model)}")
    await DramaForgeConsole(workflow).run()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    run()
