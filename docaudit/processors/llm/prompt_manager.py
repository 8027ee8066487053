"""
Prompt Manager

Loads prompt templates from YAML files in the package's prompts/
directory and renders them with jinja2, so wording can change without
code changes.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from jinja2 import Template

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_DIR = Path(__file__).parent.parent.parent / "prompts"

# Used when a prompt file is missing: no instructions, content passed through
FALLBACK_PROMPT = {
    'system_prompt': '',
    'user_prompt_template': '{{ content }}',
}


class PromptManager:
    """Renders named prompt templates, each file read once per manager"""

    def __init__(self, prompts_dir: Optional[Union[str, Path]] = None):
        self.prompts_dir = Path(prompts_dir) if prompts_dir is not None else DEFAULT_PROMPTS_DIR
        self._prompts: Dict[str, Dict[str, Any]] = {}

    def load_prompt(self, prompt_name: str) -> Dict[str, Any]:
        """
        Load <prompts_dir>/<prompt_name>.yaml

        Returns:
            Mapping with 'system_prompt' and 'user_prompt_template' keys

        Raises:
            yaml.YAMLError: If the file is not valid YAML
        """
        if prompt_name not in self._prompts:
            self._prompts[prompt_name] = self._read(prompt_name)
        return self._prompts[prompt_name]

    def get_system_prompt(self, prompt_name: str) -> str:
        return self.load_prompt(prompt_name).get('system_prompt') or ''

    def get_user_prompt(self, prompt_name: str, **kwargs) -> str:
        """Render the user template of prompt_name with kwargs"""
        template_str = self.load_prompt(prompt_name).get('user_prompt_template') or '{{ content }}'
        return Template(template_str).render(**kwargs)

    def _read(self, prompt_name: str) -> Dict[str, Any]:
        prompt_file = self.prompts_dir / f"{prompt_name}.yaml"
        if not prompt_file.exists():
            logger.warning(f"Prompt file not found: {prompt_file}")
            return dict(FALLBACK_PROMPT)

        try:
            with open(prompt_file, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to load prompt {prompt_name}: {e}")
            raise
