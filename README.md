# taskgrid

taskgrid is a small distributed task runner built on plain TCP. It has three parts:

- a **manager** that accepts tasks, keeps them in a queue and hands each one to a registered node;
- **node agents** that register with the manager, run the tasks they are sent and report back when each is done;
- a **client** that submits a batch of numbered tasks to the manager.

If a node disconnects before it reports a task as done, the manager puts that task back in the queue and gives it to another node. A task that has already been completed is not queued again.

## Installation

```
pip install .
```

## Running

Start the manager. It listens on 5000 unless another number is given. Log lines go to the console and are also appended to `manager.log` in the working directory.

```
taskgrid-manager
taskgrid-manager 5000
```

Start one or more node agents. The arguments are `<node_id> <manager_ip> <manager_port> <listen_port>`, where the last one is where the agent accepts tasks:

```
taskgrid-node node1 127.0.0.1 5000 6001
taskgrid-node node2 127.0.0.1 5000 6002
```

Each task takes the agent one second to run, after which it sends a completion notice to the manager.

Submit tasks with the client. The arguments are `<manager_ip> <manager_port> <number_of_tasks>`. This example sends five tasks, `Task_1:Workload_1` to `Task_5:Workload_5`, one connection per task:

```
taskgrid-client 127.0.0.1 5000 5
```

Press Ctrl+C in the manager's terminal to stop it. On the way out it sends `SHUTDOWN` to every registered node, and each agent that receives it stops.

## Protocol

All messages are plain text sent over TCP.

| Direction        | Message                          |
|------------------|----------------------------------|
| node → manager   | `REGISTER <node_id> <listen_port>` |
| client → manager | one task per line                |
| manager → node   | the task text, or `SHUTDOWN`     |
| node → manager   | `TASK_DONE <task>` plus newline  |

## Using it as a library

The building blocks can also be used from Python code:

```python
from taskgrid.manager import Manager, TaskStatus, parse_registration
from taskgrid.node_agent import NodeAgent, clean_task, done_message
from taskgrid.client import format_task, send_tasks

manager = Manager(5000)
manager.receive_tasks("Task_1:Workload_1\nTask_2:Workload_2\n")
manager.pending                    # ['Task_1:Workload_1', 'Task_2:Workload_2']
parse_registration("REGISTER node1 6001")   # ('node1', 6001)
done_message(" Task_1:Workload_1\n")        # 'TASK_DONE Task_1:Workload_1\n'
format_task(3)                              # 'Task_3:Workload_3'
```

`Manager.serve_forever()` runs the server and `Manager.shutdown()` stops it; `NodeAgent.run()` registers an agent and serves tasks until `NodeAgent.stop()` is called or `SHUTDOWN` arrives.

## Development

```
pip install -e ".[test]"
pytest
```