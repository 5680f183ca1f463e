# marketplace/routes/messages.py
from flask import Blueprint

from ..errors import Forbidden, NotFound
from ..logger import get_logger
from ..models import ContactMessage
from ..responses import created, ok, paginated
from ..validation import MessageCreateBody, MessageListQuery, validate_body, validate_query

_logger = get_logger(__name__)


def find_message(store, message_id):
    message = store.get_message(message_id)
    if message is None:
        raise NotFound('Message not found')
    return message


def create_blueprint(store, guard):
    bp = Blueprint('messages', __name__)

    @bp.post('/')
    @guard.authenticate
    @validate_body(MessageCreateBody)
    def send(auth, body):
        receiver = store.get_user(body.receiver_id)
        if receiver is None or not receiver.is_active:
            raise NotFound('Receiver not found')
        message = store.add(ContactMessage(sender_id=auth.id, receiver_id=receiver.id,
                                           subject=body.subject, message=body.message))
        _logger.debug(f'Message {message.id} from {auth.email} to {receiver.email}')
        return created(message.to_dict(), 'Message sent successfully')

    @bp.get('/')
    @guard.authenticate
    @validate_query(MessageListQuery)
    def index(auth, query):
        page = store.list_messages(auth.id, query.box, query.page, query.limit,
                                   unread=query.unread)
        return paginated(page, [message.to_dict() for message in page.items])

    @bp.get('/<id>')
    @guard.authenticate
    def show(auth, id):
        message = find_message(store, id)
        if not (auth.is_admin or auth.id in (message.sender_id, message.receiver_id)):
            raise Forbidden('Not authorized to view this message')
        return ok(message.to_dict())

    @bp.put('/<id>/read')
    @guard.authenticate
    def mark_read(auth, id):
        message = find_message(store, id)
        if auth.id != message.receiver_id:
            raise Forbidden('Only the receiver can mark a message as read')
        store.update(message, is_read=True)
        return ok(message.to_dict(), 'Message marked as read')

    @bp.delete('/<id>')
    @guard.authenticate
    @guard.owns('message')
    def delete(auth, id):
        store.delete(store.get_message(id))
        return ok(message='Message deleted successfully')

    return bp
