# -*- coding: utf-8 -*-
"""Run the agent demos against the live model API."""
import argparse
import json
import sys
import time

from dotenv import load_dotenv

from agents import AgentSupervisor, BackgroundAgent, ConcurrentAgent, WebAutomationAgent
from jobs import JobScheduler
from services.llm_client import AnthropicClient


def _print_block(title, body):
    print("=" * 80)
    print(title)
    print("=" * 80)
    print(body)


def demo_chat(client, args):
    print("Enter 'quit' to exit")
    while True:
        try:
            user_input = input("\nYou: ").strip()
        except EOFError:
            break
        if user_input.lower() == "quit":
            break
        if user_input:
            print(f"\nClaude: {client.ask(user_input)}")


def demo_concurrent(client, args):
    tasks = [
        {"name": "Ruby", "prompt": "Name three strengths of Ruby in one sentence each."},
        {"name": "Python", "prompt": "Name three strengths of Python in one sentence each."},
        {"name": "Go", "prompt": "Name three strengths of Go in one sentence each."},
    ]
    with ConcurrentAgent(client) as agent:
        for result in agent.execute_parallel_tasks(tasks):
            _print_block(result["task"], result["response"])
        _print_block("Promise", agent.execute_with_promise("Explain futures vs promises in two sentences."))


def demo_actor(client, args):
    with AgentSupervisor(client) as supervisor:
        replies = supervisor.distribute_work(
            [
                "What is the actor model?",
                "What is message passing?",
                "What is a supervisor tree?",
                "Why avoid shared mutable state?",
            ]
        )
        for index, reply in enumerate(replies, start=1):
            _print_block(f"Reply {index}", reply)
        print(json.dumps(supervisor.status(), indent=2))


def demo_background(client, args):
    scheduler = JobScheduler(BackgroundAgent(client))
    scheduler.schedule_job("summarize", {"text": "Background jobs let slow work happen outside the request path."})
    scheduler.schedule_job("generate_content", {"prompt": "Write a haiku about queues."})
    scheduler.schedule_job("analyze_text", {"text": "Delayed jobs wait for their turn."}, delay_seconds=args.delay)
    scheduler.schedule_job("unknown_task", {})

    scheduler.execute_pending_jobs()
    if args.delay > 0:
        print(f"Waiting {args.delay}s for delayed jobs...")
        time.sleep(args.delay)
        scheduler.execute_pending_jobs()

    for job in scheduler.list_jobs():
        print(json.dumps(job.to_dict(), indent=2, ensure_ascii=False))


def demo_web(client, args):
    agent = WebAutomationAgent(client)
    try:
        result = agent.scrape_and_analyze(args.url, "What is this website about?")
    finally:
        agent.close()
    _print_block(f"Analysis of {args.url}", result["analysis"])


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser(description="Agent demos")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("chat", help="Interactive chat").set_defaults(handler=demo_chat)
    subparsers.add_parser("concurrent", help="Thread-pool futures").set_defaults(handler=demo_concurrent)
    subparsers.add_parser("actor", help="Actor pool").set_defaults(handler=demo_actor)
    background = subparsers.add_parser("background", help="Delayed background jobs")
    background.add_argument("--delay", type=float, default=2.0, help="Delay for the deferred job (seconds)")
    background.set_defaults(handler=demo_background)
    web = subparsers.add_parser("web", help="Scrape and analyze a page")
    web.add_argument("url")
    web.set_defaults(handler=demo_web)
    args = parser.parse_args(argv)

    with AnthropicClient() as client:
        args.handler(client, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
