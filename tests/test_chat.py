"""
Salyte Beacon - Chat Assistant Tests
"""
from unittest.mock import MagicMock
import pytest
from salyte_beacon.agents import water_assistant_agent
from salyte_beacon.agents.water_assistant_agent import WaterAssistantAgent
from salyte_beacon.models.conversation import Conversation
from salyte_beacon.models.user import User


class TestWaterAssistantAgent:
    """Knowledge base answers and model fallback"""

    @pytest.mark.parametrize('message, topic', [
        ('What pH is safe to drink?', 'ph'),
        ('Are dissolved solids harmful?', 'tds'),
        ('How do I test for E. coli?', 'bacteria'),
        ('Which filter should I buy?', 'treatment'),
        ('My water looks cloudy', 'turbidity'),
        ('Is chlorine in tap water safe?', 'chlorine'),
        ('Hello there', 'general')
    ])
    def test_topic_matching(self, message, topic):
        assert WaterAssistantAgent.match_topic(message)['topic'] == topic

    def test_answer_without_model(self):
        result = WaterAssistantAgent().answer('What pH is safe?')

        assert '6.5-8.5' in result['answer']
        assert result['confidence'] == 0.95
        assert result['tokens_used'] == 150
        assert result['sources'][0]['title'] == 'WHO Guidelines for Drinking-water Quality'

    def test_answer_sources_are_copies(self):
        result = WaterAssistantAgent().answer('pH?')
        result['sources'].clear()

        assert WaterAssistantAgent().answer('pH?')['sources']

    def test_model_answer(self, monkeypatch):
        model = MagicMock()
        model.generate_content.return_value = MagicMock(
            text='  Keep pH between 6.5 and 8.5.  ',
            usage_metadata=MagicMock(total_token_count=42)
        )
        monkeypatch.setattr(water_assistant_agent.genai, 'configure', MagicMock())
        monkeypatch.setattr(water_assistant_agent.genai, 'GenerativeModel', MagicMock(return_value=model))

        result = WaterAssistantAgent(api_key='test-key').answer('pH?', history='User: hi')

        assert result['answer'] == 'Keep pH between 6.5 and 8.5.'
        assert result['tokens_used'] == 42
        prompt = model.generate_content.call_args[0][0]
        assert 'User: hi' in prompt

    def test_model_failure_falls_back(self, monkeypatch):
        model = MagicMock()
        model.generate_content.side_effect = RuntimeError('quota exhausted')
        monkeypatch.setattr(water_assistant_agent.genai, 'configure', MagicMock())
        monkeypatch.setattr(water_assistant_agent.genai, 'GenerativeModel', MagicMock(return_value=model))

        result = WaterAssistantAgent(api_key='test-key').answer('Is chlorine safe?')

        assert result['topic'] == 'chlorine'
        assert result['confidence'] == 0.93


class TestChatApi:
    """/api/chat endpoints"""

    def test_anonymous_chat(self, client, db):
        response = client.post('/api/chat', json={'message': 'What TDS level is safe?'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert 'dissolved' in data['response'].lower()
        assert data['chat_id']
        assert data['sources']
        assert db.conversations.count_documents({}) == 0

    def test_empty_message(self, client):
        response = client.post('/api/chat', json={'message': '   '})

        assert response.status_code == 400

    def test_message_too_long(self, client):
        response = client.post('/api/chat', json={'message': 'x' * 2001})

        assert response.status_code == 400
        assert response.get_json()['details'] == {'message': 'Maximum length is 2000'}

    def test_authenticated_chat_is_stored(self, client, user, auth_headers):
        first = client.post('/api/chat', headers=auth_headers, json={'message': 'Is my water cloudy?'}).get_json()
        chat_id = first['chat_id']

        client.post('/api/chat', headers=auth_headers, json={'message': 'What about pH?', 'chat_id': chat_id})

        conversation = Conversation.find_by_id(chat_id)
        assert conversation.user_id == user.id
        assert conversation.title == 'Is my water cloudy?'
        assert [m['role'] for m in conversation.messages] == ['user', 'assistant', 'user', 'assistant']
        assert User.find_by_id(user.id).activity['chat_sessions'] == 1

    def test_cannot_continue_someone_elses_chat(self, client, make_user, make_headers):
        owner, other = make_user(), make_user()
        chat_id = client.post('/api/chat', headers=make_headers(owner), json={'message': 'pH?'}).get_json()['chat_id']

        response = client.post('/api/chat', headers=make_headers(other), json={'message': 'pH?', 'chat_id': chat_id})

        assert response.status_code == 404

    def test_history_and_detail(self, client, auth_headers):
        chat_id = client.post('/api/chat', headers=auth_headers, json={'message': 'Tell me about chlorine'}).get_json()['chat_id']
        client.post('/api/chat', headers=auth_headers, json={'message': 'Tell me about bacteria'})

        history = client.get('/api/chat/history?limit=1', headers=auth_headers).get_json()
        assert len(history['history']) == 1
        assert history['pagination']['total_items'] == 2
        assert history['pagination']['has_next'] is True

        detail = client.get(f'/api/chat/{chat_id}', headers=auth_headers).get_json()
        assert detail['chat']['title'] == 'Tell me about chlorine'
        assert len(detail['chat']['messages']) == 2

    def test_history_requires_auth(self, client):
        assert client.get('/api/chat/history').status_code == 401

    def test_delete_chat(self, client, auth_headers):
        chat_id = client.post('/api/chat', headers=auth_headers, json={'message': 'pH?'}).get_json()['chat_id']

        assert client.delete(f'/api/chat/{chat_id}', headers=auth_headers).status_code == 200
        assert client.get(f'/api/chat/{chat_id}', headers=auth_headers).status_code == 404

    def test_chat_counts_against_quota(self, client, user, auth_headers):
        client.post('/api/chat', headers=auth_headers, json={'message': 'pH?'})

        assert User.find_by_id(user.id).api_usage['daily_requests'] == 1
