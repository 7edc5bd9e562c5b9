from orderbot.models.customer import Customer
from orderbot.models.conversation import Conversation
from orderbot.models.conversation_message import ConversationMessage
from orderbot.models.order import Order
from orderbot.models.order_item import OrderItem
from orderbot.models.product import Product
from orderbot.models.processed_event import ProcessedEvent
