import re
from pathlib import Path
from typing import Optional

import yaml


PROMPTS_DIR = Path(__file__).resolve().parent

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class PromptNotFound(Exception):
    pass


class PromptRegistry:
    """
    Loads and renders versioned prompts.

    A prompt file holds a `template` with `{{ name }}` placeholders
    and an optional `system` instruction.
    """

    def __init__(self, base_dir: str | Path = PROMPTS_DIR):
        self.base_dir = Path(base_dir)

    def load(self, relative_path: str) -> dict:
        """
        Example: analysis/v1.yaml
        """
        path = self.base_dir / relative_path

        if not path.exists():
            raise PromptNotFound(f"Prompt not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)

    def render(self, relative_path: str, **variables: str) -> str:
        prompt = self.load(relative_path)

        template = prompt.get("template")
        if not template:
            raise ValueError(f"Prompt template missing in {relative_path}")

        # one pass, so placeholders inside substituted values stay literal
        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name not in variables:
                raise ValueError(f"Missing prompt variable '{name}' for {relative_path}")
            return variables[name]

        return _PLACEHOLDER.sub(substitute, template)

    def system_instruction(self, relative_path: str) -> Optional[str]:
        return self.load(relative_path).get("system")
