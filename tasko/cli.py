"""Main CLI entry point for Tasko."""

import sys
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import click
import httpx

from tasko import __version__, config
from tasko import auth as auth_flows
from tasko.api import TaskoApi
from tasko.api_client import ApiClient
from tasko.guard import RouteGuard
from tasko.interactive import (
    PRIORITIES,
    console,
    display_cart,
    display_categories,
    display_category_stats,
    display_order,
    display_orders,
    display_product,
    display_products,
    display_search_results,
    display_tags,
    display_todo,
    display_todos,
    prompt_credentials,
    prompt_text,
)
from tasko.log import setup_logging
from tasko.models import (
    Cart,
    Category,
    CategoryStats,
    Comment,
    Order,
    Product,
    SearchResult,
    Tag,
    Todo,
)
from tasko.session import SessionProvider
from tasko.storage import KeyValueStorage, SessionStore, default_storage


@dataclass
class App:
    """Everything a command needs, wired together once per run."""
    store: SessionStore
    provider: SessionProvider
    client: ApiClient
    api: TaskoApi


def build_app(
    storage: Optional[KeyValueStorage] = None,
    api_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> App:
    """
    Build the store, session provider and API client.

    A 401 on a request that carried a token clears the session, so a revoked
    or expired token does not linger on disk.
    """
    store = SessionStore(storage if storage is not None else default_storage())
    provider = SessionProvider(store)
    client = ApiClient(
        api_url or config.get_api_url(),
        store,
        on_unauthorized=provider.clear_session,
        transport=transport,
    )
    return App(store=store, provider=provider, client=client, api=TaskoApi(client))


class CliNavigator:
    """Navigation target for the route guard; on a terminal, 'login' is a hint to run auth login."""

    def __init__(self):
        self.location: Optional[str] = None

    def navigate(self, location: str) -> None:
        if self.location is None:
            console.print("[red]Not logged in. Run 'tasko auth login' first.[/red]")
        self.location = location


def view_path(ctx: click.Context) -> str:
    """'tasko todo list' -> '/todo/list'"""
    parts = ctx.command_path.split()[1:]
    return "/" + "/".join(parts)


def run_view(view: Callable[[App], Awaitable[Any]], protected: bool = True) -> Any:
    """
    Run an async view inside the app's session.

    The session is loaded first; protected views then go through the route
    guard, which stays attached while the view runs so that a session cleared
    by a 401 is reported as a redirect to login.
    """
    ctx = click.get_current_context()
    app: App = ctx.find_object(App)
    navigator = CliNavigator()
    path = view_path(ctx)

    async def main():
        try:
            with app.provider.bind():
                with console.status("[cyan]Loading session...[/cyan]"):
                    await app.provider.initialize()

                if not protected:
                    return await view(app)

                stop_watching = RouteGuard(app.provider, navigator.navigate).watch(path)
                try:
                    if navigator.location is not None:
                        return None
                    return await view(app)
                finally:
                    stop_watching()
        finally:
            await app.client.aclose()

    try:
        result = asyncio.run(main())
    except RuntimeError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if navigator.location is not None:
        sys.exit(1)
    return result


class TaskoGroup(click.Group):
    """Custom Click Group that organizes commands into sections in help output."""

    TODO_COMMANDS = {'todo', 'category', 'tag', 'comment', 'search'}
    SHOP_COMMANDS = {'shop'}
    ACCOUNT_COMMANDS = {'auth'}

    def format_commands(self, ctx, formatter):
        """Override to organize commands into sections with headers."""
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            commands.append((subcommand, cmd))

        if not commands:
            return

        sections = [
            ('Todo Commands', [c for c in commands if c[0] in self.TODO_COMMANDS]),
            ('Shop Commands', [c for c in commands if c[0] in self.SHOP_COMMANDS]),
            ('Account Commands', [c for c in commands if c[0] in self.ACCOUNT_COMMANDS]),
        ]

        first = True
        for title, section_cmds in sections:
            if not section_cmds:
                continue
            if not first:
                formatter.write('\n')
            first = False
            with formatter.section(title):
                self._write_commands(formatter, section_cmds)

    def _write_commands(self, formatter, commands):
        """Helper method to write commands in a section."""
        limit = formatter.width - 2 - max(len(name) for name, _ in commands)
        for name, cmd in commands:
            help = cmd.get_short_help_str(limit)
            formatter.write_dl([(name, help)])


@click.group(cls=TaskoGroup)
@click.version_option(version=__version__)
@click.option('--debug', is_flag=True, help='Log API requests and session changes.')
@click.pass_context
def cli(ctx, debug):
    """Tasko - manage your todos and shop orders from the terminal."""
    setup_logging(debug or config.is_debug())
    if ctx.find_object(App) is None:
        try:
            ctx.obj = build_app()
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)


# ----------------------------------------------------------------------
# Account
# ----------------------------------------------------------------------

@cli.group()
def auth():
    """Log in, register, log out and manage your account."""
    pass


@auth.command()
@click.option('--email', help='Account email (prompted if omitted).')
@click.option('--password', help='Account password (prompted if omitted).')
def login(email, password):
    """
    Log in and store your session.

    \b
    EXAMPLE:
      tasko auth login
      tasko auth login --email me@example.com
    """
    if not email or not password:
        credentials = prompt_credentials()
        if credentials is None:
            sys.exit(1)
        email, _, password = credentials

    async def view(app: App):
        await auth_flows.login(app.api.auth, app.provider, email, password)

    run_view(view, protected=False)


@auth.command()
@click.option('--email', help='Account email (prompted if omitted).')
@click.option('--username', help='Display name (prompted if omitted).')
@click.option('--password', help='Account password (prompted if omitted).')
def register(email, username, password):
    """
    Create a new account and log in with it.

    \b
    EXAMPLE:
      tasko auth register
    """
    if not email or not username or not password:
        credentials = prompt_credentials(ask_username=True, confirm_password=True)
        if credentials is None:
            sys.exit(1)
        email, username, password = credentials

    async def view(app: App):
        await auth_flows.register(app.api.auth, app.provider, email, username, password)

    run_view(view, protected=False)


@auth.command()
@click.option('--all', 'all_devices', is_flag=True, help='Also revoke the sessions of every other device.')
def logout(all_devices):
    """
    Log out and clear the local session.

    \b
    EXAMPLE:
      tasko auth logout
      tasko auth logout --all
    """
    async def view(app: App):
        if all_devices and app.provider.is_authenticated:
            await app.api.auth.logout_all()
        await auth_flows.logout(app.api.auth, app.provider)

    run_view(view, protected=False)


@auth.command()
@click.option('--refresh', is_flag=True, help='Fetch the profile from the server.')
def whoami(refresh):
    """Show the logged in user."""
    async def view(app: App):
        if refresh:
            profile = await auth_flows.refresh_profile(app.api.auth, app.provider)
        else:
            profile = app.provider.profile
        console.print(f"Logged in as [cyan]{profile.username}[/cyan] ({profile.email})")
        console.print(f"[dim]User ID: {profile.id}[/dim]")

    run_view(view)


@auth.command()
def refresh():
    """Get a new access token with the stored refresh token."""
    async def view(app: App):
        await auth_flows.refresh_tokens(app.api.auth, app.provider)
        console.print("[green]✓ Access token refreshed[/green]")

    run_view(view)


@auth.command()
@click.option('--username', help='New display name.')
@click.option('--email', help='New account email.')
@click.option('--password', 'change_password', is_flag=True, help='Change the password (prompted).')
def update(username, email, change_password):
    """
    Change your username, email or password.

    \b
    EXAMPLE:
      tasko auth update --username alice2
      tasko auth update --password
    """
    old_password = new_password = None
    if change_password:
        old_password = prompt_text("Current password", is_password=True)
        new_password = prompt_text("New password", is_password=True)
        if not old_password or not new_password:
            console.print("[red]Both the current and the new password are required.[/red]")
            sys.exit(1)

    if not (username or email or new_password):
        console.print("[yellow]Nothing to change. Pass --username, --email or --password.[/yellow]")
        return

    async def view(app: App):
        await auth_flows.update_profile(
            app.api.users,
            app.provider,
            username=username,
            email=email,
            old_password=old_password,
            new_password=new_password,
        )

    run_view(view)


# ----------------------------------------------------------------------
# Todos
# ----------------------------------------------------------------------

@cli.group()
def todo():
    """Manage todos."""
    pass


@todo.command('list')
@click.option('--open', 'only_open', is_flag=True, help='Hide completed todos.')
@click.option('--category', help='Only todos in this category (name or ID).')
def list_todos(only_open, category):
    """List your todos."""
    async def view(app: App):
        todos = [Todo.from_dict(row) for row in await app.api.todos.list() or []]
        if only_open:
            todos = [t for t in todos if not t.completed]
        if category:
            wanted = category.lower()
            todos = [
                t for t in todos
                if t.category and (t.category.id == category or t.category.name.lower() == wanted)
            ]
        display_todos(todos)

    run_view(view)


@todo.command('show')
@click.argument('todo_id')
def show_todo(todo_id):
    """Show a todo and its comments."""
    async def view(app: App):
        item = Todo.from_dict(await app.api.todos.get(todo_id))
        comments = [Comment.from_dict(row) for row in await app.api.comments.for_todo(todo_id) or []]
        display_todo(item, comments)

    run_view(view)


@todo.command('add')
@click.argument('title')
@click.option('--description', '-d', help='Longer description.')
@click.option('--priority', '-p', type=click.Choice(PRIORITIES, case_sensitive=False), default='MEDIUM', show_default=True)
@click.option('--due', type=click.DateTime(formats=['%Y-%m-%d']), help='Due date (YYYY-MM-DD).')
@click.option('--category', 'category_id', help='Category ID.')
def add_todo(title, description, priority, due, category_id):
    """
    Create a todo.

    \b
    EXAMPLE:
      tasko todo add "Buy milk" --priority HIGH --due 2026-11-01
    """
    async def view(app: App):
        created = Todo.from_dict(await app.api.todos.create(
            title,
            description=description,
            priority=priority.upper(),
            due_date=due.date().isoformat() if due else None,
            category_id=category_id,
        ))
        console.print(f"[green]✓ Created todo '{created.title}'[/green] [dim]({created.id})[/dim]")

    run_view(view)


@todo.command('done')
@click.argument('todo_id')
@click.option('--undo', is_flag=True, help='Mark the todo as open again.')
def complete_todo(todo_id, undo):
    """Mark a todo as completed."""
    async def view(app: App):
        updated = Todo.from_dict(await app.api.todos.update(todo_id, completed=not undo))
        state = "open" if undo else "completed"
        console.print(f"[green]✓ Marked '{updated.title}' as {state}[/green]")

    run_view(view)


@todo.command('delete')
@click.argument('todo_id')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation.')
def delete_todo(todo_id, yes):
    """Delete a todo."""
    if not yes and not click.confirm(f"Delete todo {todo_id}?"):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    async def view(app: App):
        await app.api.todos.delete(todo_id)
        console.print(f"[green]✓ Deleted todo {todo_id}[/green]")

    run_view(view)


# ----------------------------------------------------------------------
# Categories, tags and comments
# ----------------------------------------------------------------------

@cli.group()
def category():
    """Manage todo categories."""
    pass


@category.command('list')
def list_categories():
    """List categories."""
    async def view(app: App):
        display_categories([Category.from_dict(row) for row in await app.api.categories.list() or []])

    run_view(view)


@category.command('add')
@click.argument('name')
@click.option('--description', '-d')
@click.option('--color', help='Hex color, e.g. #3b82f6.')
@click.option('--icon')
def add_category(name, description, color, icon):
    """Create a category."""
    async def view(app: App):
        created = Category.from_dict(await app.api.categories.create(name, description=description, color=color, icon=icon))
        console.print(f"[green]✓ Created category '{created.name}'[/green] [dim]({created.id})[/dim]")

    run_view(view)


@category.command('stats')
def category_stats():
    """Show how many todos each category holds."""
    async def view(app: App):
        display_category_stats([CategoryStats.from_dict(row) for row in await app.api.categories.stats() or []])

    run_view(view)


@category.command('edit')
@click.argument('category_id')
@click.option('--name')
@click.option('--description', '-d')
@click.option('--color')
@click.option('--icon')
def edit_category(category_id, name, description, color, icon):
    """Change a category."""
    async def view(app: App):
        updated = Category.from_dict(await app.api.categories.update(
            category_id, name=name, description=description, color=color, icon=icon,
        ))
        console.print(f"[green]✓ Updated category '{updated.name}'[/green]")

    run_view(view)


@category.command('delete')
@click.argument('category_id')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation.')
def delete_category(category_id, yes):
    """Delete a category. Its todos are kept."""
    if not yes and not click.confirm(f"Delete category {category_id}?"):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    async def view(app: App):
        await app.api.categories.delete(category_id)
        console.print(f"[green]✓ Deleted category {category_id}[/green]")

    run_view(view)


@cli.group()
def tag():
    """Manage tags."""
    pass


@tag.command('list')
def list_tags():
    """List tags."""
    async def view(app: App):
        display_tags([Tag.from_dict(row) for row in await app.api.tags.list() or []])

    run_view(view)


@tag.command('add')
@click.argument('name')
@click.option('--color')
def add_tag(name, color):
    """Create a tag."""
    async def view(app: App):
        created = Tag.from_dict(await app.api.tags.create(name, color=color))
        console.print(f"[green]✓ Created tag '{created.name}'[/green]")

    run_view(view)


@tag.command('edit')
@click.argument('tag_id')
@click.option('--name')
@click.option('--color')
def edit_tag(tag_id, name, color):
    """Rename or recolor a tag."""
    async def view(app: App):
        updated = Tag.from_dict(await app.api.tags.update(tag_id, name=name, color=color))
        console.print(f"[green]✓ Updated tag '{updated.name}'[/green]")

    run_view(view)


@tag.command('delete')
@click.argument('tag_id')
def delete_tag(tag_id):
    """Delete a tag."""
    async def view(app: App):
        await app.api.tags.delete(tag_id)
        console.print(f"[green]✓ Deleted tag {tag_id}[/green]")

    run_view(view)


@cli.group()
def comment():
    """Comment on todos."""
    pass


@comment.command('add')
@click.argument('todo_id')
@click.argument('content')
def add_comment(todo_id, content):
    """Add a comment to a todo."""
    async def view(app: App):
        await app.api.comments.create(todo_id, content)
        console.print("[green]✓ Comment added[/green]")

    run_view(view)


@comment.command('edit')
@click.argument('comment_id')
@click.argument('content')
def edit_comment(comment_id, content):
    """Change the text of a comment."""
    async def view(app: App):
        await app.api.comments.update(comment_id, content)
        console.print("[green]✓ Comment updated[/green]")

    run_view(view)


@comment.command('delete')
@click.argument('comment_id')
def delete_comment(comment_id):
    """Delete a comment."""
    async def view(app: App):
        await app.api.comments.delete(comment_id)
        console.print(f"[green]✓ Deleted comment {comment_id}[/green]")

    run_view(view)


@cli.command()
@click.argument('query')
@click.option('--type', 'types', multiple=True, type=click.Choice(['todo', 'category', 'comment']), help='Limit to a result type (repeatable).')
@click.option('--limit', type=int)
def search(query, types, limit):
    """Search todos, categories and comments."""
    async def view(app: App):
        rows = await app.api.search.search(query, types=list(types) or None, limit=limit)
        display_search_results([SearchResult.from_dict(row) for row in rows or []])

    run_view(view)


# ----------------------------------------------------------------------
# Shop
# ----------------------------------------------------------------------

@cli.group()
def shop():
    """Browse products, manage the cart and place orders."""
    pass


@shop.command()
@click.option('--keyword', '-k', help='Filter by name.')
@click.option('--page', type=int, default=1, show_default=True)
@click.option('--limit', type=int, default=20, show_default=True)
def products(keyword, page, limit):
    """List products."""
    async def view(app: App):
        result = await app.api.products.list(keyword=keyword, page=page, limit=limit) or {}
        display_products(
            [Product.from_dict(row) for row in result.get("data") or []],
            page=result.get("page", page),
            pages=result.get("pages", 1),
        )

    run_view(view)


@shop.command()
@click.argument('product_id')
def product(product_id):
    """Show a product and its SKUs."""
    async def view(app: App):
        display_product(Product.from_dict(await app.api.products.get(product_id)))

    run_view(view)


@shop.command()
def cart():
    """Show the cart."""
    async def view(app: App):
        display_cart(Cart.from_dict(await app.api.cart.get()))

    run_view(view)


@shop.command('add')
@click.argument('sku_id')
@click.option('--quantity', '-q', type=click.IntRange(min=1), default=1, show_default=True)
def add_to_cart(sku_id, quantity):
    """Add a product SKU to the cart."""
    async def view(app: App):
        display_cart(Cart.from_dict(await app.api.cart.add_item(sku_id, quantity)))

    run_view(view)


@shop.command('remove')
@click.argument('item_id')
def remove_from_cart(item_id):
    """Remove an item from the cart."""
    async def view(app: App):
        display_cart(Cart.from_dict(await app.api.cart.remove_item(item_id)))

    run_view(view)


@shop.command('set')
@click.argument('item_id')
@click.argument('quantity', type=click.IntRange(min=1))
def set_quantity(item_id, quantity):
    """Change the quantity of a cart item."""
    async def view(app: App):
        display_cart(Cart.from_dict(await app.api.cart.update_item(item_id, quantity)))

    run_view(view)


@shop.command('clear')
def clear_cart():
    """Remove everything from the cart."""
    async def view(app: App):
        await app.api.cart.clear()
        console.print("[green]✓ Cart cleared[/green]")

    run_view(view)


@shop.command()
@click.option('--address', prompt='Shipping address')
@click.option('--name', 'recipient_name', prompt='Recipient name')
@click.option('--phone', 'recipient_phone', prompt='Recipient phone')
@click.option('--notes')
def checkout(address, recipient_name, recipient_phone, notes):
    """Place an order for everything in the cart."""
    async def view(app: App):
        current = Cart.from_dict(await app.api.cart.get())
        if current.is_empty:
            console.print("[yellow]Your cart is empty.[/yellow]")
            return
        order = Order.from_dict(await app.api.orders.create(
            current.id,
            shipping_address=address,
            recipient_name=recipient_name,
            recipient_phone=recipient_phone,
            notes=notes,
        ))
        console.print(f"[green]✓ Order {order.order_number} placed ({order.total_amount:.2f})[/green]")

    run_view(view)


@shop.command()
def orders():
    """List your orders."""
    async def view(app: App):
        display_orders([Order.from_dict(row) for row in await app.api.orders.list() or []])

    run_view(view)


@shop.command()
@click.argument('order_id')
def order(order_id):
    """Show one order."""
    async def view(app: App):
        display_order(Order.from_dict(await app.api.orders.get(order_id)))

    run_view(view)


@shop.command()
@click.argument('order_id')
def cancel(order_id):
    """Cancel an order."""
    async def view(app: App):
        order = Order.from_dict(await app.api.orders.cancel(order_id))
        console.print(f"[green]✓ Order {order.order_number} is now {order.status}[/green]")

    run_view(view)


def main():
    cli()


if __name__ == "__main__":
    main()
