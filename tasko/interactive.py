"""Interactive terminal UI utilities for Tasko."""

from typing import List, Optional

from prompt_toolkit.shortcuts import prompt
from rich.console import Console
from rich.table import Table

from tasko.models import Cart, CategoryStats, Comment, Order, Product, SearchResult, Tag, Todo, Category


console = Console()

PRIORITIES = ["LOW", "MEDIUM", "HIGH", "URGENT"]
PRIORITY_STYLES = {"LOW": "dim", "MEDIUM": "white", "HIGH": "yellow", "URGENT": "bold red"}


def prompt_text(label: str, default: str = "", is_password: bool = False) -> Optional[str]:
    """
    Prompt for a single line of text.

    Returns:
        The stripped input, or None if the user cancelled or entered nothing
    """
    try:
        value = prompt(f"{label}: ", default=default, is_password=is_password)
    except (KeyboardInterrupt, EOFError):
        return None
    value = value.strip()
    return value or None


def prompt_credentials(ask_username: bool = False, confirm_password: bool = False) -> Optional[tuple]:
    """
    Prompt for email, password and, for registration, a username.

    Returns:
        (email, username, password) with username None when not asked,
        or None if cancelled or the passwords do not match
    """
    email = prompt_text("Email")
    if not email:
        console.print("[red]Email is required.[/red]")
        return None

    username = None
    if ask_username:
        username = prompt_text("Username")
        if not username:
            console.print("[red]Username is required.[/red]")
            return None

    password = prompt_text("Password", is_password=True)
    if not password:
        console.print("[red]Password is required.[/red]")
        return None

    if confirm_password:
        password_confirm = prompt_text("Confirm password", is_password=True)
        if password != password_confirm:
            console.print("[red]Passwords do not match.[/red]")
            return None

    return email, username, password


def display_todos(todos: List[Todo]):
    """Display todos in a table."""
    if not todos:
        console.print("[yellow]No todos found.[/yellow]")
        return

    table = Table(title="Todos")
    table.add_column("ID", style="dim")
    table.add_column("", width=1)
    table.add_column("Title", style="cyan")
    table.add_column("Priority")
    table.add_column("Category")
    table.add_column("Due")

    for todo in todos:
        priority_style = PRIORITY_STYLES.get(todo.priority, "white")
        table.add_row(
            todo.id,
            "[green]✓[/green]" if todo.completed else "",
            f"[strike]{todo.title}[/strike]" if todo.completed else todo.title,
            f"[{priority_style}]{todo.priority}[/{priority_style}]",
            todo.category.name if todo.category else "",
            todo.due_date.strftime("%Y-%m-%d") if todo.due_date else "",
        )

    console.print(table)


def display_todo(todo: Todo, comments: List[Comment]):
    """Display a single todo with its comments."""
    status = "[green]done[/green]" if todo.completed else "[yellow]open[/yellow]"
    console.print(f"[bold cyan]{todo.title}[/bold cyan]  ({status}, {todo.priority})")
    if todo.category:
        console.print(f"[dim]Category:[/dim] {todo.category.name}")
    if todo.due_date:
        console.print(f"[dim]Due:[/dim] {todo.due_date.strftime('%Y-%m-%d')}")
    if todo.description:
        console.print(f"\n{todo.description}")

    if comments:
        console.print("\n[bold]Comments[/bold]")
        for comment in comments:
            when = comment.created_at.strftime("%Y-%m-%d %H:%M") if comment.created_at else ""
            console.print(f"  [cyan]{comment.author or 'unknown'}[/cyan] [dim]{when}[/dim]")
            console.print(f"    {comment.content}")


def display_categories(categories: List[Category]):
    if not categories:
        console.print("[yellow]No categories found.[/yellow]")
        return

    table = Table(title="Categories")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Color")
    table.add_column("Description")
    for category in categories:
        table.add_row(category.id, category.name, category.color, category.description or "")
    console.print(table)


def display_category_stats(stats: List[CategoryStats]):
    if not stats:
        console.print("[yellow]No categories found.[/yellow]")
        return

    table = Table(title="Category statistics")
    table.add_column("Name", style="cyan")
    table.add_column("Todos", justify="right")
    table.add_column("Completed", justify="right")
    for row in stats:
        table.add_row(row.name, str(row.todo_count), str(row.completed_count))
    console.print(table)


def display_tags(tags: List[Tag]):
    if not tags:
        console.print("[yellow]No tags found.[/yellow]")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("", style="cyan")
    table.add_column("", style="dim")
    for tag in tags:
        table.add_row(f"- {tag.name}", tag.id)
    console.print(table)


def display_products(products: List[Product], page: int = 1, pages: int = 1):
    if not products:
        console.print("[yellow]No products found.[/yellow]")
        return

    table = Table(title=f"Products (page {page}/{pages})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("SKUs")
    for product in products:
        name = product.name if product.is_available else f"[dim]{product.name} (unavailable)[/dim]"
        skus = ", ".join(f"{code or sku_id} ({stock})" for sku_id, code, _price, stock in product.skus)
        table.add_row(product.id, name, f"{product.base_price:.2f}", skus)
    console.print(table)


def display_cart(cart: Cart):
    if cart.is_empty:
        console.print("[yellow]Your cart is empty.[/yellow]")
        return

    table = Table(title="Cart")
    table.add_column("Item", style="dim")
    table.add_column("Product", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Unit", justify="right")
    table.add_column("Total", justify="right")
    for item in cart.items:
        table.add_row(item.id, item.product_name, str(item.quantity), f"{item.unit_price:.2f}", f"{item.item_total:.2f}")
    console.print(table)
    console.print(f"Subtotal: {cart.subtotal:.2f}  Tax: {cart.tax_amount:.2f}  [bold]Total: {cart.total:.2f}[/bold]")


def display_orders(orders: List[Order]):
    if not orders:
        console.print("[yellow]No orders found.[/yellow]")
        return

    table = Table(title="Orders")
    table.add_column("ID", style="dim")
    table.add_column("Number", style="cyan")
    table.add_column("Status")
    table.add_column("Items", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Placed")
    for order in orders:
        table.add_row(
            order.id,
            order.order_number,
            order.status,
            str(order.item_count),
            f"{order.total_amount:.2f}",
            order.created_at.strftime("%Y-%m-%d") if order.created_at else "",
        )
    console.print(table)


def display_search_results(results: List[SearchResult]):
    if not results:
        console.print("[yellow]Nothing matched.[/yellow]")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("", style="magenta")
    table.add_column("", style="cyan")
    table.add_column("", style="dim")
    for result in results:
        table.add_row(result.type, result.label, result.id)
    console.print(table)


def display_product(product: Product):
    """Display one product with all of its SKUs."""
    title = f"[bold cyan]{product.name}[/bold cyan]"
    if not product.is_available:
        title += " [dim](unavailable)[/dim]"
    console.print(f"{title}  {product.base_price:.2f}")
    if product.description:
        console.print(product.description)

    if not product.skus:
        console.print("[yellow]No SKUs for this product.[/yellow]")
        return

    table = Table(title="SKUs")
    table.add_column("SKU ID", style="dim")
    table.add_column("Code", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Stock", justify="right")
    for sku_id, code, price, stock in product.skus:
        table.add_row(sku_id, code, f"{price:.2f}", str(stock) if stock else "[red]0[/red]")
    console.print(table)
    console.print("[dim]Add one with: tasko shop add <SKU ID>[/dim]")


def display_order(order: Order):
    """Display one order with its lines and shipping details."""
    placed = order.created_at.strftime("%Y-%m-%d %H:%M") if order.created_at else ""
    console.print(f"[bold cyan]Order {order.order_number}[/bold cyan]  {order.status}  [dim]{placed}[/dim]")
    if order.recipient_name or order.shipping_address:
        console.print(f"[dim]Ship to:[/dim] {order.recipient_name or ''} {order.recipient_phone or ''}".rstrip())
        console.print(f"         {order.shipping_address or ''}")
    if order.notes:
        console.print(f"[dim]Notes:[/dim] {order.notes}")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("", justify="right")
    table.add_column("", style="cyan")
    table.add_column("", style="dim")
    for product_name, sku_code, quantity in order.lines:
        table.add_row(f"{quantity}x", product_name, sku_code)
    console.print(table)
    console.print(f"[bold]Total: {order.total_amount:.2f}[/bold]")
