"""
Fixed prompt texts.

Business-specific copy (business context, personality, flow rules,
restrictions, registration and error messages) is edited in the data
store and arrives through the config cache. Only the parts that must hold
regardless of configuration live here, together with the defaults used
when a configurable message is missing.
"""

from commerce_orchestrator.config import BusinessConfig

TOOL_REMINDER = """
AVAILABLE TOOLS (you MUST use them, never just acknowledge in text):
- search_products: find parts before mentioning any product or price
- search_workshops: find repair workshops by location
- add_to_cart: whenever the customer wants to buy something
- view_cart: show the current cart and totals
- place_order: as soon as the customer says checkout, order or confirm
- check_order_status: look up an order by its order number
- get_my_orders: list the customer's recent orders

Every cart or order action requires the matching tool call. Saying
"added to cart" or "order placed" without calling the tool is wrong.
"""

UNREGISTERED_NOTICE = """CUSTOMER INFO:
- New/unregistered customer (not in our database)
- Phone: {channel_identity}
- CANNOT PLACE ORDERS until registered
- If they try to order, tell them: "{registration_message}"
- They CAN browse products and workshops
"""

REGISTERED_BLOCK = """CUSTOMER INFO:
- Name: {name}
- Customer Code: {customer_code}
- City: {city}
- Customer Grade: {grade} ({discount}% discount)
- Credit Limit: {credit_limit}
- Balance: {balance}
"""

CART_REMINDER = """CART ACTIONS:
- If the customer says "checkout", "place order" or "confirm", call place_order NOW
- If the customer wants more items, call add_to_cart
"""


def default_registration_message(business: BusinessConfig) -> str:
    return f"Please call {business.support_phone} to register as a customer first."


def default_fallback_message(business: BusinessConfig) -> str:
    """Apology sent when a turn cannot be completed."""
    return (
        "Sorry, I encountered an error. Please try again or contact us at "
        f"{business.support_phone}."
    )
