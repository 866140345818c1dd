import asyncio

from dotenv import load_dotenv
from loguru import logger

from streamchat.app_config import load_json_config, parse_app_config, resolve_runtime_env
from streamchat.bootstrap import bootstrap_runtime
from streamchat.terminal import ChatRepl, TerminalRenderer


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    runtime = bootstrap_runtime(app, env)
    controller = runtime.controller

    controller.subscribe(TerminalRenderer(controller))
    repl = ChatRepl(controller)

    print("streamchat (type 'exit' to quit, '/help' for commands)")
    print(f"Provider: {app.provider_name} ({app.model})")
    if runtime.search_grounding:
        print("Search grounding: enabled")
    active = controller.active_session
    if active is not None:
        print(f"Chat: {active.title} ({len(controller.sessions)} saved)")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue

            try:
                await repl.handle_input(trimmed)
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
