#!/usr/bin/env python3
import argparse
import asyncio
import getpass
import subprocess
import sys


async def list_users() -> None:
    from sqlalchemy import select

    from core.database import async_session, engine
    from models.models import Base, User

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with async_session() as db:
            result = await db.execute(select(User).order_by(User.created_at))
            users = result.scalars().all()

            if not users:
                print("No users found.")
                return

            print(f"{'ID':<34} {'Username':<20} {'Email':<30} {'Created'}")
            print("-" * 100)
            for user in users:
                created = user.created_at.strftime("%Y-%m-%d %H:%M")
                print(f"{user.id:<34} {user.username:<20} {user.email:<30} {created}")
    finally:
        await engine.dispose()


async def create_user(username: str, email: str) -> int:
    from pydantic import ValidationError

    from core.database import async_session, engine
    from models.models import Base
    from schemas import extract_validation_errors
    from schemas.auth import RegisterForm
    from services.auth_service import AuthService

    password = getpass.getpass("Password: ")
    password_confirm = getpass.getpass("Confirm password: ")

    try:
        form = RegisterForm(
            username=username,
            email=email,
            password=password,
            password_confirm=password_confirm,
        )
    except ValidationError as e:
        for error in extract_validation_errors(e):
            print(f"error: {error}", file=sys.stderr)
        return 1

    if errors := form.validate_passwords_match():
        print(f"error: {errors[0]}", file=sys.stderr)
        return 1

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with async_session() as db:
            result = await AuthService(db).register_user(form.username, form.email, form.password)
            if not result.ok:
                print(f"error: {result.error}", file=sys.stderr)
                return 1
            assert result.value is not None
            print(f"Created user {result.value.username} ({result.value.id})")
            return 0
    finally:
        await engine.dispose()


async def list_collections(username: str | None) -> None:
    from sqlalchemy import func, select

    from core.database import async_session, engine
    from models.models import Base, CollectionBookmark, SharedCollection, User

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with async_session() as db:
            query = (
                select(SharedCollection, User.username, func.count(CollectionBookmark.seq))
                .join(User, User.id == SharedCollection.user_id)
                .outerjoin(
                    CollectionBookmark, CollectionBookmark.collection_id == SharedCollection.id
                )
                .group_by(SharedCollection.id, User.username)
                .order_by(SharedCollection.created_at.desc())
            )
            if username:
                query = query.where(User.username == username.lower())
            rows = (await db.execute(query)).all()

            if not rows:
                print("No collections found.")
                return

            print(f"{'Slug':<10} {'Owner':<20} {'Items':<6} {'Public':<7} {'Name'}")
            print("-" * 75)
            for collection, owner, count in rows:
                public = "yes" if collection.is_public else "no"
                print(f"{collection.slug:<10} {owner:<20} {count:<6} {public:<7} {collection.name}")
    finally:
        await engine.dispose()


def run_in_container(container: str, command: list[str]) -> int:
    docker_cmd = ["docker", "exec", "-it", container, "python", "cli.py", *command]
    result = subprocess.run(docker_cmd)
    return result.returncode


def main() -> None:
    parser = argparse.ArgumentParser(
        description="smartmarks administration CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--container",
        metavar="NAME",
        help="Run command inside Docker container (default: smartmarks)",
        nargs="?",
        const="smartmarks",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("list-users", help="List all users")

    create_parser = subparsers.add_parser("create-user", help="Create a user account")
    create_parser.add_argument("username")
    create_parser.add_argument("email")

    collections_parser = subparsers.add_parser("list-collections", help="List shared collections")
    collections_parser.add_argument("--user", metavar="USERNAME", help="Only this user's")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.container:
        # forward everything after the container option untouched
        command_index = sys.argv.index(args.command)
        sys.exit(run_in_container(args.container, sys.argv[command_index:]))

    if args.command == "list-users":
        asyncio.run(list_users())
    elif args.command == "create-user":
        sys.exit(asyncio.run(create_user(args.username, args.email)))
    elif args.command == "list-collections":
        asyncio.run(list_collections(args.user))
    else:
        print(f"Unknown command: {args.command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
