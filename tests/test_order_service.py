"""OrderService against both persistence profiles."""

from datetime import datetime

import pytest

from app.exceptions import InvalidArgumentError, ResourceNotFoundError
from app.schemas import OrderStatus, User
from app.services import OrderService

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(repos) -> OrderService:
    return OrderService(repos)


class TestRetrieval:
    async def test_get_all_orders(self, service, test_user, test_product):
        await service.create_order(test_user.id, test_product.id, 2)
        await service.create_order(test_user.id, test_product.id, 3)

        orders = await service.get_all_orders()

        assert len(orders) == 2
        assert [o.quantity for o in orders] == [2, 3]

    async def test_get_order_by_id(self, service, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 3)

        found = await service.get_order_by_id(order.id)

        assert found.id == order.id
        assert found.user.username == "test_user"
        assert found.product.name == "Test Product"
        assert found.quantity == 3
        assert found.status == OrderStatus.PENDING
        assert found.total_amount == 300.0

    async def test_get_order_by_id_not_found(self, service):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await service.get_order_by_id(999)
        assert str(exc_info.value) == "Order not found with id 999"

    async def test_get_orders_by_user_id(self, service, repos, test_user, test_product):
        another = await repos.users.save(User(username="another_user", email="another.user@example.com"))
        await repos.commit()
        await service.create_order(test_user.id, test_product.id, 1)
        await service.create_order(another.id, test_product.id, 1)

        orders = await service.get_orders_by_user_id(test_user.id)

        assert len(orders) == 1
        assert orders[0].user.username == "test_user"

    async def test_get_orders_by_user_id_without_orders(self, service, test_user):
        assert await service.get_orders_by_user_id(test_user.id) == []

    async def test_get_orders_by_user_id_unknown_user(self, service):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await service.get_orders_by_user_id(404)
        assert str(exc_info.value) == "User not found with id 404"

    async def test_get_orders_by_date_range_is_inclusive(self, service, repos, test_user, test_product):
        start = datetime(2023, 1, 1, 0, 0)
        end = datetime(2023, 12, 31, 23, 59)
        dates = [
            start,
            datetime(2023, 6, 15, 12, 30),
            end,
            datetime(2022, 12, 31, 23, 59, 59),
            datetime(2024, 1, 1, 0, 0),
        ]
        ids = []
        for date in dates:
            order = await service.create_order(test_user.id, test_product.id, 1)
            order.order_date = date
            await repos.orders.save(order)
            ids.append(order.id)
        await repos.commit()

        found = await service.get_orders_by_date_range(start, end)

        assert [o.id for o in found] == ids[:3]
        assert all(start <= o.order_date <= end for o in found)


class TestCreateOrder:
    async def test_create_order(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 5)

        assert order.id is not None
        assert order.user.id == test_user.id
        assert order.product.id == test_product.id
        assert order.quantity == 5
        assert order.status == OrderStatus.PENDING
        assert order.total_amount == 500.0
        assert order.order_date is not None

        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 45

    @pytest.mark.parametrize("quantity", [1, 10, 50])
    async def test_create_order_with_various_quantities(self, service, repos, test_user, test_product, quantity):
        order = await service.create_order(test_user.id, test_product.id, quantity)

        assert order.quantity == quantity
        assert order.total_amount == test_product.price * quantity
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 50 - quantity

    async def test_create_order_insufficient_stock(self, service, repos, test_user, test_product):
        with pytest.raises(InvalidArgumentError) as exc_info:
            await service.create_order(test_user.id, test_product.id, 100)

        assert str(exc_info.value) == f"Insufficient stock for product id {test_product.id}"
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 50
        assert await service.get_all_orders() == []

    async def test_create_order_unknown_user(self, service, test_product):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await service.create_order(999, test_product.id, 1)
        assert str(exc_info.value) == "User not found with id 999"

    async def test_create_order_unknown_product(self, service, test_user):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await service.create_order(test_user.id, 999, 1)
        assert str(exc_info.value) == "Product not found with id 999"

    @pytest.mark.parametrize("quantity", [0, -3])
    async def test_create_order_rejects_non_positive_quantity(self, service, repos, test_user, test_product, quantity):
        with pytest.raises(InvalidArgumentError, match="Quantity must be greater than zero."):
            await service.create_order(test_user.id, test_product.id, quantity)
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 50


class TestUpdateOrderQuantity:
    async def test_increase_quantity(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 2)

        updated = await service.update_order_quantity(order.id, 4)

        assert updated.quantity == 4
        assert updated.total_amount == 400.0
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 46

    async def test_decrease_quantity_restores_stock(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 10)

        updated = await service.update_order_quantity(order.id, 3)

        assert updated.quantity == 3
        assert updated.total_amount == 300.0
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 47

    async def test_increase_beyond_stock(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 2)

        with pytest.raises(InvalidArgumentError) as exc_info:
            await service.update_order_quantity(order.id, 100)

        assert str(exc_info.value) == "Insufficient stock to increase quantity."
        unchanged = await service.get_order_by_id(order.id)
        assert unchanged.quantity == 2
        assert unchanged.total_amount == 200.0
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 48

    async def test_increase_using_all_remaining_stock(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 2)

        updated = await service.update_order_quantity(order.id, 50)

        assert updated.quantity == 50
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 0

    async def test_update_non_pending_order(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 2)
        order.status = OrderStatus.COMPLETED
        await repos.orders.save(order)
        await repos.commit()

        with pytest.raises(InvalidArgumentError) as exc_info:
            await service.update_order_quantity(order.id, 3)

        assert str(exc_info.value) == "Only pending orders can be updated."
        unchanged = await service.get_order_by_id(order.id)
        assert unchanged.quantity == 2
        assert unchanged.status == OrderStatus.COMPLETED
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 48

    async def test_update_unknown_order(self, service):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await service.update_order_quantity(999, 1)
        assert str(exc_info.value) == "Order not found with id 999"


class TestCancelOrder:
    async def test_cancel_order(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 5)

        canceled = await service.cancel_order(order.id)

        assert canceled.status == OrderStatus.CANCELED
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 50

    async def test_cancel_twice(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 5)
        await service.cancel_order(order.id)

        with pytest.raises(InvalidArgumentError, match="Only pending orders can be canceled."):
            await service.cancel_order(order.id)

        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 50

    async def test_cancel_completed_order(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 2)
        order.status = OrderStatus.COMPLETED
        await repos.orders.save(order)
        await repos.commit()

        with pytest.raises(InvalidArgumentError) as exc_info:
            await service.cancel_order(order.id)

        assert str(exc_info.value) == "Only pending orders can be canceled."
        unchanged = await service.get_order_by_id(order.id)
        assert unchanged.status == OrderStatus.COMPLETED
        product = await repos.products.find_by_id(test_product.id)
        assert product.stock == 48

    async def test_cancel_unknown_order(self, service):
        with pytest.raises(ResourceNotFoundError):
            await service.cancel_order(999)


class TestTotalAmount:
    async def test_calculate_total_amount(self, service, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 5)

        assert await service.calculate_total_amount(order.id) == 500.0

    async def test_total_amount_is_stored_value(self, service, repos, test_user, test_product):
        order = await service.create_order(test_user.id, test_product.id, 5)
        product = await repos.products.find_by_id(test_product.id)
        product.price = 1.0
        await repos.products.save(product)
        await repos.commit()

        assert await service.calculate_total_amount(order.id) == 500.0

    async def test_calculate_total_amount_unknown_order(self, service):
        with pytest.raises(ResourceNotFoundError, match="Order not found with id 7"):
            await service.calculate_total_amount(7)
