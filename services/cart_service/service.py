import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository

from .cart import Cart, CartProduct
from .repository import CartRepository
from .schemas import CartItemCreate

logger = structlog.get_logger(__name__)


class ProductUnavailable(ValueError):
    pass


class CartService:
    @staticmethod
    async def load_cart(db: AsyncSession, user_id: str) -> Cart:
        """Builds the cart from stored rows priced at the current listing price."""
        rows = await CartRepository.get_items(db, user_id)
        products = await ProductRepository.get_products_by_ids(db, [row.product_id for row in rows])

        cart = Cart()
        for row in rows:
            product = products.get(row.product_id)
            if product is None:
                # Listing was removed since it was added; drop it from the view
                logger.warning("cart_product_missing", user_id=user_id, product_id=row.product_id)
                continue
            cart.add(CartProduct.from_product(product), row.quantity)
        return cart

    @staticmethod
    async def add_item(db: AsyncSession, user_id: str, data: CartItemCreate) -> Cart:
        product = await ProductRepository.get_product_by_id(db, data.product_id)
        if not product or product.status != "active":
            raise ProductUnavailable(f"Product {data.product_id} is not available")

        await CartRepository.add_item(db, user_id, data.product_id, data.quantity)
        return await CartService.load_cart(db, user_id)

    @staticmethod
    async def update_quantity(db: AsyncSession, user_id: str, product_id: str, quantity: int) -> Cart:
        if quantity < 1:
            await CartRepository.remove_item(db, user_id, product_id)
        else:
            await CartRepository.set_quantity(db, user_id, product_id, quantity)
        return await CartService.load_cart(db, user_id)

    @staticmethod
    async def remove_item(db: AsyncSession, user_id: str, product_id: str) -> Cart:
        await CartRepository.remove_item(db, user_id, product_id)
        return await CartService.load_cart(db, user_id)

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: str) -> int:
        removed = await CartRepository.clear_cart(db, user_id)
        logger.info("cart_cleared", user_id=user_id, removed=removed)
        return removed
