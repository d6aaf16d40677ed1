import asyncio
import os
from collections import OrderedDict
from datetime import datetime, timezone

import discord
from dotenv import load_dotenv

from newsflow import ArticleMetadata, Settings, build_service
from newsflow.logger import setup_logging

# Load environment variables from .env
load_dotenv()

# The bot token must be stored in .env as DISCORD_BOT_NEWSFLOW="YOUR_BOT_TOKEN".
TOKEN = os.getenv("DISCORD_BOT_NEWSFLOW")

if not TOKEN:
    raise ValueError("DISCORD_BOT_NEWSFLOW is not set. Check your .env file.")

settings = Settings.from_env(dotenv=False)
logger = setup_logging(settings.log_level)
news = build_service(settings)

LIKE = "👍"
DISLIKE = "👎"
FEED_SIZE = 3

intents = discord.Intents.default()
intents.message_content = True  # needed to read commands
intents.reactions = True

client = discord.Client(intents=intents)

MAX_POSTED = 500
MAX_SEEN_PER_USER = 200
MAX_USERS = 1000

# message id -> article posted in it; user id -> article ids already shown (oldest first)
posted = OrderedDict()
seen = OrderedDict()


def remember_post(message_id, article):
    posted[message_id] = article
    while len(posted) > MAX_POSTED:
        posted.popitem(last=False)


def mark_seen(user_id, article_id):
    shown = seen.pop(user_id, None) or OrderedDict()
    shown[article_id] = True
    while len(shown) > MAX_SEEN_PER_USER:
        shown.popitem(last=False)
    # most recently active user moves to the end
    seen[user_id] = shown
    while len(seen) > MAX_USERS:
        seen.popitem(last=False)


def format_article(article):
    when = article.published_at.strftime('%Y-%m-%d %H:%M') if article.published_at else "undated"
    text = f"**{article.title}**\n*{article.source} · {article.category} · {article.region} - {when}*\n"
    if article.url:
        text += f"<{article.url}>"
    # Keep messages under Discord's 2000 character limit.
    if len(text) > 2000:
        text = text[:1997] + "..."
    return text


@client.event
async def on_ready():
    """Called once the bot has logged in."""
    logger.info("Logged in as %s", client.user)


@client.event
async def on_message(message):
    # Ignore the bot's own messages.
    if message.author == client.user:
        return

    user_id = str(message.author.id)

    if message.content.startswith('!news'):
        await message.channel.send("Fetching your news... 👍 to like, 👎 to skip.")
        try:
            articles = await asyncio.to_thread(
                news.get_articles, FEED_SIZE, list(seen.get(user_id, ())), user_id
            )
        except Exception as e:
            logger.error("News fetch error: %s", e)
            await message.channel.send("Something went wrong while fetching the news.")
            return

        if not articles:
            await message.channel.send("No new articles right now.")
            return

        for article in articles:
            sent = await message.channel.send(format_article(article))
            remember_post(sent.id, article)
            mark_seen(user_id, article.id)
            await sent.add_reaction(LIKE)
            await sent.add_reaction(DISLIKE)

    elif message.content.startswith('!search'):
        query = message.content[len('!search'):].strip()
        results = await asyncio.to_thread(news.search, query, 5)
        if not results:
            await message.channel.send("Nothing matched.")
            return
        await message.channel.send("\n\n".join(format_article(a) for a in results)[:2000])

    elif message.content.startswith('!mix'):
        try:
            level = int(message.content[len('!mix'):].strip())
            await asyncio.to_thread(news.set_preferences, user_id, level)
        except ValueError:
            await message.channel.send("Usage: !mix <0-100>")
            return
        await message.channel.send(f"Personalization set to {level}%.")


@client.event
async def on_reaction_add(reaction, user):
    if user == client.user:
        return
    article = posted.get(reaction.message.id)
    if article is None:
        return
    emoji = str(reaction.emoji)
    if emoji not in (LIKE, DISLIKE):
        return
    action = "liked" if emoji == LIKE else "disliked"
    try:
        await asyncio.to_thread(
            news.record_activity,
            str(user.id),
            article.id,
            action,
            datetime.now(timezone.utc).isoformat(),
            ArticleMetadata.from_article(article),
        )
    except Exception as e:
        logger.error("Could not record %s for %s: %s", action, user.id, e)


if __name__ == "__main__":
    # Run the bot.
    client.run(TOKEN)
