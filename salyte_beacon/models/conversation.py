from datetime import datetime
from bson import ObjectId
from pymongo import DESCENDING
from salyte_beacon.config.database import db_instance
from salyte_beacon.models.user import to_object_id

TITLE_LENGTH = 60


class Conversation:
    def __init__(self, user_id, title=None, messages=None, _id=None, created_at=None, updated_at=None):
        self.id = str(_id) if _id else None
        self.user_id = user_id
        self.title = title
        self.messages = messages or []  # [{"role": "user/assistant", "content": "...", "sources": [...], "timestamp": ...}]
        self.created_at = created_at or datetime.utcnow()
        self.updated_at = updated_at or self.created_at

    def save(self):
        """Save conversation to database"""
        db = db_instance.get_db()
        conversation_data = {
            'user_id': self.user_id,
            'title': self.title,
            'messages': self.messages,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

        if self.id:
            db.conversations.update_one(
                {'_id': ObjectId(self.id)},
                {'$set': conversation_data}
            )
        else:
            result = db.conversations.insert_one(conversation_data)
            self.id = str(result.inserted_id)

        return self

    def add_message(self, role, content, sources=None):
        """Add a message to the conversation"""
        if not self.title and role == 'user':
            self.title = content if len(content) <= TITLE_LENGTH else content[:TITLE_LENGTH].rstrip() + '...'

        self.messages.append({
            'role': role,
            'content': content,
            'sources': sources or [],
            'timestamp': datetime.utcnow()
        })
        self.updated_at = datetime.utcnow()
        return self.save()

    def delete(self):
        db = db_instance.get_db()
        db.conversations.delete_one({'_id': ObjectId(self.id)})

    @staticmethod
    def from_document(conv_data):
        return Conversation(
            user_id=conv_data.get('user_id'),
            title=conv_data.get('title'),
            messages=conv_data.get('messages', []),
            _id=conv_data['_id'],
            created_at=conv_data.get('created_at'),
            updated_at=conv_data.get('updated_at')
        )

    @staticmethod
    def find_by_id(conversation_id):
        """Find conversation by ID"""
        object_id = to_object_id(conversation_id)
        if not object_id:
            return None
        db = db_instance.get_db()
        conv_data = db.conversations.find_one({'_id': object_id})
        return Conversation.from_document(conv_data) if conv_data else None

    @staticmethod
    def find_by_user(user_id, page=1, limit=20):
        """Return (conversations, total) for a user, most recent first"""
        db = db_instance.get_db()
        query = {'user_id': user_id}
        total = db.conversations.count_documents(query)
        cursor = db.conversations.find(query).sort('updated_at', DESCENDING)
        cursor = cursor.skip((page - 1) * limit).limit(limit)
        return [Conversation.from_document(conv_data) for conv_data in cursor], total

    @staticmethod
    def delete_for_user(user_id):
        db = db_instance.get_db()
        return db.conversations.delete_many({'user_id': user_id}).deleted_count

    def get_conversation_history(self, max_messages=10):
        """Get recent conversation history formatted for AI"""
        recent_messages = self.messages[-max_messages:]
        return "\n".join(f"{msg['role'].title()}: {msg['content']}" for msg in recent_messages)

    def to_summary(self):
        """Entry for the chat history list"""
        first_question = next((m['content'] for m in self.messages if m['role'] == 'user'), '')
        return {
            'id': self.id,
            'title': self.title,
            'preview': first_question[:100],
            'message_count': len(self.messages),
            'timestamp': self.updated_at
        }

    def to_dict(self):
        """Convert conversation to dictionary"""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'messages': self.messages,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }
