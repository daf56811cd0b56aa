"""Passive sources that report subdomains for a domain, with and without API keys."""