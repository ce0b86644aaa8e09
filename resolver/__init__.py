from resolver.links import LinkResolver, find_links, find_tweets, tweet_url

__all__ = ["LinkResolver", "find_links", "find_tweets", "tweet_url"]
