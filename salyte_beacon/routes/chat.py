import uuid
import logging
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
from salyte_beacon.agents.water_assistant_agent import WaterAssistantAgent
from salyte_beacon.models.conversation import Conversation
from salyte_beacon.utils.auth_middleware import login_required_api, check_api_quota, validate_json_data
from salyte_beacon.utils.errors import ValidationError, NotFoundError
from salyte_beacon.utils.rate_limiter import rate_limit
from salyte_beacon.utils.validators import get_text, get_pagination, pagination_info

logger = logging.getLogger(__name__)

chat_bp = Blueprint('chat', __name__)

MAX_MESSAGE_LENGTH = 2000


def get_agent():
    """Assistant instance for the current app configuration"""
    return WaterAssistantAgent(api_key=current_app.config.get('GOOGLE_API_KEY'))


def get_owned_conversation(conversation_id):
    conversation = Conversation.find_by_id(conversation_id)
    if not conversation or conversation.user_id != current_user.id:
        raise NotFoundError('Chat session not found or access denied', error='Chat not found')
    return conversation


@chat_bp.route('', methods=['POST'])
@rate_limit(60, 60, scope='chat')
@check_api_quota
@validate_json_data(['message'])
def send_message():
    """Ask the water safety assistant a question"""
    data = request.get_json()
    message = get_text(data, 'message', max_length=MAX_MESSAGE_LENGTH)
    if not message:
        raise ValidationError('Message cannot be empty', error='Invalid message')

    chat_id = get_text(data, 'chat_id')
    agent = get_agent()

    if current_user.is_authenticated:
        if chat_id:
            conversation = get_owned_conversation(chat_id)
        else:
            conversation = Conversation(user_id=current_user.id)
            current_user.increment_activity('chat_sessions')

        result = agent.answer(message, conversation.get_conversation_history())
        conversation.add_message('user', message)
        conversation.add_message('assistant', result['answer'], result['sources'])
        chat_id = conversation.id
        logger.info("Chat answer for user %s on topic %s", current_user.id, result['topic'])
    else:
        # Anonymous sessions are not stored
        result = agent.answer(message)
        chat_id = chat_id or uuid.uuid4().hex
        logger.info("Anonymous chat answer on topic %s", result['topic'])

    return jsonify({
        'success': True,
        'chat_id': chat_id,
        'response': result['answer'],
        'sources': result['sources'],
        'confidence': result['confidence'],
        'tokens_used': result['tokens_used'],
        'timestamp': datetime.utcnow()
    }), 200


@chat_bp.route('/history', methods=['GET'])
@login_required_api
def get_history():
    """Paginated chat sessions for the current user"""
    page, limit = get_pagination(request.args)
    conversations, total = Conversation.find_by_user(current_user.id, page=page, limit=limit)

    return jsonify({
        'success': True,
        'history': [conversation.to_summary() for conversation in conversations],
        'pagination': pagination_info(page, limit, total)
    }), 200


@chat_bp.route('/<chat_id>', methods=['GET'])
@login_required_api
def get_chat(chat_id):
    """Get a specific chat session"""
    conversation = get_owned_conversation(chat_id)
    return jsonify({'success': True, 'chat': conversation.to_dict()}), 200


@chat_bp.route('/<chat_id>', methods=['DELETE'])
@login_required_api
def delete_chat(chat_id):
    """Delete a chat session"""
    conversation = get_owned_conversation(chat_id)
    conversation.delete()

    logger.info("Chat session %s deleted by user %s", chat_id, current_user.id)
    return jsonify({'success': True, 'message': 'Chat session deleted successfully'}), 200
