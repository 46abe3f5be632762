"""Define the views of the program."""

from typing import TYPE_CHECKING, Any, Dict, List

from pydantic import BaseModel
from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

if TYPE_CHECKING:
    from .model.auth import Group, User
    from .model.record import Record


def _format(value: Any) -> str:
    """Return the text of an attribute of a model."""
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(f"- {_format(element)}" for element in value)
    if isinstance(value, dict):
        return ", ".join(f"{key}: {element}" for key, element in value.items())
    return str(value)


def print_model(model: BaseModel) -> None:
    """Print the attributes of a model.

    Args:
        model: A pydantic model.
    """
    table = Table(box=None, show_header=False)
    table.add_column("Type", justify="center", style="green", no_wrap=True)
    table.add_column("Value")
    for attribute, value in model.model_dump(mode="json").items():
        if value is None or value == []:
            continue
        title = type(model).model_fields[attribute].title or attribute.replace(
            "_", " "
        ).capitalize()
        table.add_row(title, _format(value))

    Console().print(table)


def print_record(record: "Record") -> None:
    """Print the information of a record.

    Args:
        record: Record to print, it should be already protected or revealed.
    """
    print_model(record)


def print_records(records: List["Record"]) -> None:
    """Print a summary of a list of records.

    Args:
        records: Records to print.
    """
    table = Table(box=None)
    table.add_column("ID", style="green", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Title", style="magenta")
    table.add_column("Owner")
    table.add_column("Group")
    table.add_column("Flags")
    for record in records:
        flags = []
        if record.is_locked:
            flags.append("locked")
        if record.is_encrypted:
            flags.append("encrypted")
        table.add_row(
            record.id,
            record.kind.value,
            record.title,
            record.owner,
            record.group or "",
            ", ".join(flags),
        )

    Console().print(table)


def print_access(label: str, records: List["Record"]) -> None:
    """Print the records a user has access to, grouped by their group.

    Args:
        label: Entity we're printing the access of.
        records: Records the entity has access to.
    """
    # Create the tree structure
    tree = Tree(f"Record access for {label}")
    trees: Dict[str, Tree] = {}

    for record in records:
        group = record.group or "personal"
        try:
            active_tree = trees[group]
        except KeyError:
            active_tree = tree.add(group)
            trees[group] = active_tree
        active_tree.add(
            Text.assemble((record.title, "magenta"), " (", (record.id, "green"), ")")
        )

    Console().print(tree)


def print_group(group: "Group", users: List["User"]) -> None:
    """Print the information of a group.

    Args:
        group: Group to print
        users: List of Users of the group, the owner included
    """
    # Create the tree structure
    tree = Tree(Text.assemble((group.name, "bold"), f" ({group.id})"))
    if group.description:
        tree.add(Text(group.description, style="italic"))

    for user in users:
        tree.add(
            Text.assemble(
                (user.name, "magenta"),
                ": ",
                (user.id, "green"),
                " (",
                group.role_of(user.id).value,
                ")",
            ),
        )

    Console().print(tree)
