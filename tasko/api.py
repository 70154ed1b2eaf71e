"""REST resources of the Tasko API.

Each class is a thin wrapper that forwards to ApiClient; the server does the
work.
"""

from typing import Any, Dict, List, Optional

from tasko.api_client import ApiClient


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class Resource:
    def __init__(self, client: ApiClient):
        self.client = client


class AuthApi(Resource):
    """Login, registration and token management."""

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Log in with email and password.

        Returns:
            {accessToken, refreshToken, expiresIn, tokenType, user}
        """
        return await self.client.post("/auth/login", {"email": email, "password": password})

    async def register(self, email: str, username: str, password: str) -> Dict[str, Any]:
        return await self.client.post("/auth/register", {"email": email, "username": username, "password": password})

    async def me(self) -> Dict[str, Any]:
        return await self.client.get("/auth/me")

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """
        Exchange the refresh token for a new access token.

        Returns:
            {accessToken, refreshToken, expiresIn, tokenType}
        """
        return await self.client.post("/auth/refresh", {"refreshToken": refresh_token})

    async def logout(self, refresh_token: str) -> Dict[str, Any]:
        """Revoke the refresh token on the server."""
        return await self.client.post("/auth/logout", {"refreshToken": refresh_token})

    async def logout_all(self) -> Dict[str, Any]:
        """Revoke every refresh token of the current user."""
        return await self.client.post("/auth/logout-all")


class UserApi(Resource):
    async def update(
        self,
        user_id: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
        old_password: Optional[str] = None,
        new_password: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = _drop_none({
            "username": username,
            "email": email,
            "oldPassword": old_password,
            "newPassword": new_password,
        })
        return await self.client.put(f"/users/{user_id}", data)


class TodoApi(Resource):
    async def list(self) -> List[Dict[str, Any]]:
        return await self.client.get("/todos")

    async def get(self, todo_id: str) -> Dict[str, Any]:
        return await self.client.get(f"/todos/{todo_id}")

    async def create(
        self,
        title: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        due_date: Optional[str] = None,
        category_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = _drop_none({
            "title": title,
            "description": description,
            "priority": priority,
            "dueDate": due_date,
            "categoryId": category_id,
        })
        return await self.client.post("/todos", data)

    async def update(self, todo_id: str, **changes: Any) -> Dict[str, Any]:
        """
        Update a todo.

        Args:
            todo_id: Todo to update
            **changes: Fields in snake_case (title, description, completed,
                       priority, due_date, category_id); None values are skipped
        """
        names = {"due_date": "dueDate", "category_id": "categoryId"}
        data = _drop_none({names.get(k, k): v for k, v in changes.items()})
        return await self.client.put(f"/todos/{todo_id}", data)

    async def delete(self, todo_id: str) -> Dict[str, Any]:
        return await self.client.delete(f"/todos/{todo_id}")


class CategoryApi(Resource):
    async def list(self) -> List[Dict[str, Any]]:
        return await self.client.get("/categories")

    async def stats(self) -> List[Dict[str, Any]]:
        return await self.client.get("/categories/stats")

    async def create(
        self,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = _drop_none({"name": name, "description": description, "color": color, "icon": icon})
        return await self.client.post("/categories", data)

    async def update(self, category_id: str, **changes: Any) -> Dict[str, Any]:
        return await self.client.put(f"/categories/{category_id}", _drop_none(changes))

    async def delete(self, category_id: str) -> Dict[str, Any]:
        return await self.client.delete(f"/categories/{category_id}")


class TagApi(Resource):
    async def list(self) -> List[Dict[str, Any]]:
        return await self.client.get("/tags")

    async def create(self, name: str, color: Optional[str] = None) -> Dict[str, Any]:
        return await self.client.post("/tags", _drop_none({"name": name, "color": color}))

    async def update(self, tag_id: str, name: Optional[str] = None, color: Optional[str] = None) -> Dict[str, Any]:
        return await self.client.put(f"/tags/{tag_id}", _drop_none({"name": name, "color": color}))

    async def delete(self, tag_id: str) -> Dict[str, Any]:
        return await self.client.delete(f"/tags/{tag_id}")


class CommentApi(Resource):
    async def for_todo(self, todo_id: str) -> List[Dict[str, Any]]:
        return await self.client.get(f"/comments/todo/{todo_id}")

    async def create(self, todo_id: str, content: str) -> Dict[str, Any]:
        return await self.client.post("/comments", {"content": content, "todoId": todo_id})

    async def update(self, comment_id: str, content: str) -> Dict[str, Any]:
        return await self.client.put(f"/comments/{comment_id}", {"content": content})

    async def delete(self, comment_id: str) -> Dict[str, Any]:
        return await self.client.delete(f"/comments/{comment_id}")


class ProductApi(Resource):
    async def list(
        self,
        keyword: Optional[str] = None,
        category_id: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        List products matching a filter.

        Returns:
            {data: [...], total, page, pages}
        """
        params = {
            "keyword": keyword,
            "categoryId": category_id,
            "minPrice": min_price,
            "maxPrice": max_price,
            "page": page,
            "limit": limit,
        }
        return await self.client.get("/products", params=params)

    async def get(self, product_id: str) -> Dict[str, Any]:
        return await self.client.get(f"/products/{product_id}")


class CartApi(Resource):
    async def get(self) -> Dict[str, Any]:
        return await self.client.get("/cart")

    async def add_item(self, sku_id: str, quantity: int = 1) -> Dict[str, Any]:
        return await self.client.post("/cart/items", {"skuId": sku_id, "quantity": quantity})

    async def update_item(self, item_id: str, quantity: int) -> Dict[str, Any]:
        return await self.client.put(f"/cart/items/{item_id}", {"quantity": quantity})

    async def remove_item(self, item_id: str) -> Dict[str, Any]:
        return await self.client.delete(f"/cart/items/{item_id}")

    async def clear(self) -> Dict[str, Any]:
        return await self.client.delete("/cart")


class OrderApi(Resource):
    async def list(self) -> List[Dict[str, Any]]:
        return await self.client.get("/orders")

    async def get(self, order_id: str) -> Dict[str, Any]:
        return await self.client.get(f"/orders/{order_id}")

    async def create(
        self,
        cart_id: str,
        shipping_address: str,
        recipient_name: str,
        recipient_phone: str,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Place an order for everything in the cart."""
        data = _drop_none({
            "cartId": cart_id,
            "shippingAddress": shipping_address,
            "recipientName": recipient_name,
            "recipientPhone": recipient_phone,
            "notes": notes,
        })
        return await self.client.post("/orders", data)

    async def cancel(self, order_id: str) -> Dict[str, Any]:
        return await self.client.put(f"/orders/{order_id}/cancel")


class SearchApi(Resource):
    async def search(self, query: str, types: Optional[List[str]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"query": query, "types": ",".join(types) if types else None, "limit": limit}
        return await self.client.get("/search", params=params)


class TaskoApi:
    """All resources, sharing one ApiClient."""

    def __init__(self, client: ApiClient):
        self.client = client
        self.auth = AuthApi(client)
        self.users = UserApi(client)
        self.todos = TodoApi(client)
        self.categories = CategoryApi(client)
        self.tags = TagApi(client)
        self.comments = CommentApi(client)
        self.products = ProductApi(client)
        self.cart = CartApi(client)
        self.orders = OrderApi(client)
        self.search = SearchApi(client)
