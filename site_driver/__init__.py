"""Site deployment driver: manage sites as remotely deployed stacks"""
