"""
Tests for the Gemini facade and the AI editor endpoints.

The Gemini SDK is patched out; nothing here talks to the network.
"""
import pytest

import ai_service
from ai_service import AIService
from errors import ServiceUnavailableError


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    def generate_content(self, prompt):
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return FakeResponse(self.reply)


@pytest.fixture
def patch_model(monkeypatch):
    def _patch(reply):
        model = FakeModel(reply)
        monkeypatch.setattr(ai_service.genai, 'configure', lambda **kwargs: None)
        monkeypatch.setattr(ai_service.genai, 'GenerativeModel', lambda name: model)
        return model
    return _patch


class TestAIService:

    def test_unavailable_without_key(self):
        service = AIService(api_key=None)

        assert service.is_available() is False
        with pytest.raises(ServiceUnavailableError):
            service.summarize('anything')

    def test_summary_strips_markdown(self, patch_model):
        patch_model('**Bold** summary text #ai #blog')

        assert AIService(api_key='k').summarize('body') == 'Bold summary text'

    def test_seo_titles_parsing(self, patch_model):
        patch_model('1. First Title\n- "Second Title"\n\n* Third Title\nFourth')

        titles = AIService(api_key='k').seo_titles('Base', 3)

        assert titles == ['First Title', 'Second Title', 'Third Title']

    def test_generate_mentions_keywords(self, patch_model):
        model = patch_model('Body text')

        AIService(api_key='k').generate('Flask', 'casual', ['python', 'web'])

        assert 'python, web' in model.prompts[0]
        assert 'casual' in model.prompts[0]

    def test_reply_prompt_names_post(self, patch_model):
        model = patch_model('Thanks, glad it helped!')

        reply = AIService(api_key='k').reply('Great read', 'Flask tips', 'warm')

        assert reply == 'Thanks, glad it helped!'
        assert "'Flask tips'" in model.prompts[0] and 'warm' in model.prompts[0]


    def test_provider_error_becomes_unavailable(self, patch_model):
        patch_model(RuntimeError('quota exceeded'))

        with pytest.raises(ServiceUnavailableError):
            AIService(api_key='k').generate('Flask')


class TestAIEndpoints:

    def test_generate_ai(self, client, alice):
        resp = client.post('/api/posts/generate-ai',
                           json={'title': 'Flask tips', 'tone': 'casual', 'keywords': ['web']},
                           headers=alice[1])

        assert resp.status_code == 200
        generated = resp.get_json()['generated_content']
        assert generated['content'] == 'Generated body about Flask tips.'
        assert generated['seo_description'] == 'Meta for Flask tips'

    def test_generate_ai_validation(self, client, alice):
        resp = client.post('/api/posts/generate-ai', json={'title': 'x'}, headers=alice[1])
        assert resp.status_code == 400

    def test_non_string_input_is_a_field_error(self, client, alice):
        resp = client.post('/api/posts/generate-content', json={'prompt': ['Write', 'it']},
                           headers=alice[1])

        assert resp.status_code == 400
        assert resp.get_json()['errors'] == [{'field': 'prompt',
                                              'message': 'prompt must be a string'}]

    def test_non_string_tone(self, client, alice):
        resp = client.post('/api/posts/generate-ai', json={'title': 'Flask tips', 'tone': 7},
                           headers=alice[1])
        assert resp.get_json()['errors'][0]['field'] == 'tone'


    def test_improve_title(self, client, alice):
        resp = client.post('/api/posts/improve-title', json={'title': 'Flask'}, headers=alice[1])

        data = resp.get_json()['data']
        assert data['title'] == 'Flask: The Guide'
        assert len(data['alternatives']) == 2

    def test_generate_excerpt_and_content(self, client, alice):
        excerpt = client.post('/api/posts/generate-excerpt',
                              json={'content': 'Long enough content'}, headers=alice[1])
        content = client.post('/api/posts/generate-content', json={'prompt': 'Write it'},
                              headers=alice[1])

        assert excerpt.get_json()['data']['excerpt'] == 'A short summary.'
        assert content.get_json()['data']['content'] == 'Generated body about Write it.'

    def test_requires_auth(self, client):
        assert client.post('/api/posts/generate-content', json={'prompt': 'x'}).status_code == 401

    def test_unavailable(self, client, alice, app):
        app.extensions['ai_service'].available = False

        resp = client.post('/api/posts/generate-content', json={'prompt': 'Write it'},
                           headers=alice[1])
        status = client.get('/api/posts/ai-status').get_json()

        assert resp.status_code == 503
        assert status['ai_service']['available'] is False
