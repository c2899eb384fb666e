"""
Thin facade over the Gemini API for summaries, drafts, titles and meta
descriptions. Any failure is reported as ServiceUnavailableError; there
are no retries.
"""
import re

import google.generativeai as genai # Genai model imported here
import structlog

from errors import ServiceUnavailableError
from text_utils import clean_markdown_logic

logger = structlog.get_logger(__name__)


class AIService:

    def __init__(self, api_key=None, model_name='gemini-1.5-flash'):
        self.api_key = api_key
        self.model_name = model_name
        self._model = None

    @classmethod
    def from_config(cls, config):
        return cls(api_key=config.get('GEMINI_API_KEY'), model_name=config.get('GEMINI_MODEL'))

    def is_available(self):
        return bool(self.api_key)

    def _generate(self, prompt):
        if not self.is_available():
            raise ServiceUnavailableError()
        try:
            if self._model is None:
                # Gemini model configured
                genai.configure(api_key=self.api_key)
                self._model = genai.GenerativeModel(self.model_name)
            response = self._model.generate_content(prompt)
            text = response.text
        except Exception as e:
            logger.warning('gemini_error', model=self.model_name, error=str(e))
            raise ServiceUnavailableError('AI could not generate content.') from e
        return (text or '').strip()

    def summarize(self, text, max_length=300):
        #Prompting done here to make sure ai does what we want
        prompt = (
            f"Summarize the following blog post in at most {max_length} characters. "
            f"Return plain text only, no markdown, no hashtags.\n\n{text}"
        )
        summary = clean_markdown_logic(self._generate(prompt))
        return summary[:max_length].strip()

    def generate(self, title, tone='informative', keywords=()):
        keyword_line = f"Work in these keywords: {', '.join(keywords)}. " if keywords else ''
        prompt = (
            f"Act as a professional blogger. Write a complete blog post titled '{title}' "
            f"in a {tone} tone (approx 600 words). {keyword_line}"
            f"Use short paragraphs separated by blank lines. Do not repeat the title. "
            f"Do not use markdown formatting or hashtags."
        )
        return clean_markdown_logic(self._generate(prompt))

    def meta_description(self, title, content):
        prompt = (
            f"Write an SEO meta description (max 160 characters) for a blog post titled "
            f"'{title}'. Reply with the description only.\n\n{content[:2000]}"
        )
        return clean_markdown_logic(self._generate(prompt))[:160].strip()

    def seo_titles(self, title, count=3):
        prompt = (
            f"Suggest {count} improved, SEO friendly titles for a blog post titled '{title}'. "
            f"Return one title per line, no numbering, no quotes."
        )
        lines = []
        for line in self._generate(prompt).splitlines():
            # Drop list markers the model adds anyway ("1.", "-", "*")
            line = re.sub(r'^\s*(\d+[.)]|[-*])\s*', '', line).strip().strip('"')
            line = clean_markdown_logic(line)
            if line:
                lines.append(line)
        return lines[:count]

    def reply(self, comment, post_title, tone='friendly'):
        prompt = (
            f"You are the author of the blog post '{post_title}'. Write a short reply "
            f"(max 3 sentences) in a {tone} tone to this reader comment. "
            f"Plain text only, no hashtags.\n\n{comment}"
        )
        return clean_markdown_logic(self._generate(prompt))
