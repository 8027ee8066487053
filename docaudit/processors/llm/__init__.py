from docaudit.processors.llm.prompt_manager import PromptManager

__all__ = ['PromptManager']
