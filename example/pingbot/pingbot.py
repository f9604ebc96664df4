"""
Runs a very simple termie bot that responds to the command ping,
on every server listed in servers.txt (one 'token host port' per line).
"""

import logging

import trio
import trio_asyncio

from termie import Client, LoginOptions, Message, ServerConfig

PING_MESSAGE = "Fifteen pirates on a dead man's chest! Yohoho and a bottle of rum!"


def read_servers(path: str = "servers.txt"):
    with open(path) as servers:
        for line in servers:
            if line.strip() and not line.lstrip().startswith(";"):
                token, host, port = line.split()
                yield ServerConfig(token, host, int(port))


async def main():
    async with Client(list(read_servers())) as client:

        @client.listen("message")
        async def on_message(_, message: Message):
            if message.content.rstrip() == "'ping":
                await message.reply("[pong] " + PING_MESSAGE)

        @client.listen("ready")
        async def on_ready(_, which: Client):
            print("Ready on {} servers".format(len(which.sessions)))

        @client.listen("error")
        async def on_error(_, err: Exception):
            print("Error: {}".format(err))

        await client.login(LoginOptions(reconnection_attempts=10))
        await trio.sleep_forever()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    trio_asyncio.run(main)
