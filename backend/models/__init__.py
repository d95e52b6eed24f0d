# Import every model so relationship() targets resolve on first use
from models.users import User
from models.category import Category
from models.product import Product, ProductDiscount, ProductVariation
from models.customer import Customer
from models.order import Order, OrderItem, OrderStatus, ORDER_STATUS_TRANSITIONS
from models.price_update import PriceUpdate
from models.cart import Cart, CartItem
from models.whatsapp_job import WhatsAppJob, JobStatus
from models.log import Log
