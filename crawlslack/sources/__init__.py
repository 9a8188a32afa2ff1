"""Crawlers for blogs, feeds, research boards, job searches and listings."""