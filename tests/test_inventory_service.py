import pytest

import crud
from errors import ConflictError, NotFoundError, ValidationError
from models import ImageUpload, LocationIn, LocationUpdate, ToolWriteRequest


def _location(inventory, name, parent=None):
    return inventory.create_location(LocationIn(name=name, parent_id=parent.id if parent else None))


# ---------- Location ----------
def test_garage_shelf_hammer_scenario(inventory):
    garage = _location(inventory, "Garage")
    shelf = _location(inventory, "Shelf A", garage)
    hammer = inventory.create_tool(ToolWriteRequest(label="Hammer", location_id=shelf.id))

    assert inventory.descendants_of(garage.id) == {garage.id, shelf.id}

    scoped = inventory.list_tools(location_id=garage.id)
    assert [t.id for t in scoped] == [hammer.id]
    assert scoped[0].location.name == "Shelf A"


def test_create_location_trims_and_validates(inventory):
    loc = inventory.create_location(LocationIn(name="  Shed  ", description="   "))
    assert loc.name == "Shed"
    assert loc.description is None

    with pytest.raises(ValidationError):
        inventory.create_location(LocationIn(name="   "))
    with pytest.raises(NotFoundError):
        inventory.create_location(LocationIn(name="Orphan", parent_id=999))


def test_self_parent_is_conflict_and_changes_nothing(inventory):
    loc = _location(inventory, "Garage")

    with pytest.raises(ConflictError):
        inventory.update_location(loc.id, LocationUpdate(name="Renamed", parent_id=loc.id))

    reloaded = inventory.get_location(loc.id)
    assert reloaded.name == "Garage"
    assert reloaded.parent_id is None
    assert reloaded.updated_at == loc.updated_at


def test_reparent_under_descendant_is_conflict(inventory):
    building = _location(inventory, "Building")
    room = _location(inventory, "Room", building)
    shelf = _location(inventory, "Shelf", room)

    with pytest.raises(ConflictError):
        inventory.update_location(building.id, LocationUpdate(parent_id=shelf.id))

    assert inventory.get_location(building.id).parent_id is None


def test_update_location_partial_and_move_to_root(inventory):
    garage = _location(inventory, "Garage")
    shelf = _location(inventory, "Shelf", garage)

    renamed = inventory.update_location(shelf.id, LocationUpdate(description="top"))
    assert renamed.name == "Shelf"
    assert renamed.parent_id == garage.id
    assert renamed.description == "top"

    moved = inventory.update_location(shelf.id, LocationUpdate(parent_id=None))
    assert moved.parent_id is None

    with pytest.raises(NotFoundError):
        inventory.update_location(999, LocationUpdate(name="x"))
    with pytest.raises(NotFoundError):
        inventory.update_location(shelf.id, LocationUpdate(parent_id=999))
    with pytest.raises(ValidationError):
        inventory.update_location(shelf.id, LocationUpdate(name=" "))


def test_delete_location_detaches_children_and_tools(inventory):
    garage = _location(inventory, "Garage")
    shelf = _location(inventory, "Shelf", garage)
    direct = inventory.create_tool(ToolWriteRequest(label="Rake", location_id=garage.id))
    nested = inventory.create_tool(ToolWriteRequest(label="Hammer", location_id=shelf.id))

    inventory.delete_location(garage.id)

    assert inventory.get_location(shelf.id).parent_id is None
    assert inventory.get_tool(direct.id).location_id is None
    assert inventory.get_tool(nested.id).location_id == shelf.id

    with pytest.raises(NotFoundError):
        inventory.delete_location(garage.id)


def test_list_locations_roots_children_flat(inventory):
    garage = _location(inventory, "Garage")
    attic = _location(inventory, "Attic")
    shelf = _location(inventory, "Shelf", garage)

    assert [l.name for l in inventory.list_locations()] == ["Attic", "Garage"]
    assert [l.id for l in inventory.list_locations(parent_id=garage.id)] == [shelf.id]
    assert {l.id for l in inventory.list_locations(flat=True)} == {garage.id, attic.id, shelf.id}


def test_location_summaries_and_path(inventory):
    garage = _location(inventory, "Garage")
    shelf = _location(inventory, "Shelf", garage)
    inventory.create_tool(ToolWriteRequest(label="Hammer", location_id=shelf.id))
    inventory.create_tool(ToolWriteRequest(label="Saw", location_id=shelf.id))

    counts = {s.name: s.tool_count for s in inventory.location_summaries()}
    assert counts == {"Garage": 0, "Shelf": 2}

    assert [l.name for l in inventory.location_path(shelf.id)] == ["Garage", "Shelf"]
    with pytest.raises(NotFoundError):
        inventory.location_path(999)


# ---------- Tool ----------
def test_create_tool_validates_label_and_location(inventory, assets):
    with pytest.raises(ValidationError):
        inventory.create_tool(ToolWriteRequest(label="  "))
    with pytest.raises(ValidationError):
        inventory.create_tool(ToolWriteRequest())
    with pytest.raises(NotFoundError):
        inventory.create_tool(
            ToolWriteRequest(label="Saw", location_id=999, image=ImageUpload(data=b"img", filename="a.jpg"))
        )
    assert assets.list_filenames() == []


def test_create_tool_trims_fields(inventory):
    tool = inventory.create_tool(ToolWriteRequest(label=" Saw ", description=" ", notes=" sharp "))
    assert tool.label == "Saw"
    assert tool.description is None
    assert tool.notes == "sharp"
    assert tool.is_borrowed is False
    assert tool.borrowed_at is None


def test_update_tool_is_partial(inventory):
    tool = inventory.create_tool(ToolWriteRequest(label="Saw", description="pull saw", notes="sharp"))

    updated = inventory.update_tool(tool.id, ToolWriteRequest(notes="dull"))
    assert updated.label == "Saw"
    assert updated.description == "pull saw"
    assert updated.notes == "dull"
    assert updated.updated_at >= tool.updated_at

    cleared = inventory.update_tool(tool.id, ToolWriteRequest(description=None))
    assert cleared.description is None
    assert cleared.notes == "dull"

    with pytest.raises(ValidationError):
        inventory.update_tool(tool.id, ToolWriteRequest(label=""))
    with pytest.raises(NotFoundError):
        inventory.update_tool(999, ToolWriteRequest(label="x"))


def test_borrow_invariant(inventory):
    tool = inventory.create_tool(ToolWriteRequest(label="Ladder", borrowed_by="ignored"))
    assert tool.borrowed_by is None

    borrowed = inventory.borrow_tool(tool.id, " Alice ")
    assert borrowed.is_borrowed is True
    assert borrowed.borrowed_by == "Alice"
    assert borrowed.borrowed_at is not None

    # still borrowed: timestamp is kept
    again = inventory.update_tool(tool.id, ToolWriteRequest(is_borrowed=True, borrowed_by="Bob"))
    assert again.borrowed_at == borrowed.borrowed_at
    assert again.borrowed_by == "Bob"

    returned = inventory.return_tool(tool.id)
    assert returned.is_borrowed is False
    assert returned.borrowed_at is None
    assert returned.borrowed_by is None

    not_borrowed = inventory.update_tool(tool.id, ToolWriteRequest(borrowed_by="Carol"))
    assert not_borrowed.borrowed_by is None


def test_borrowed_filter(inventory):
    a = inventory.create_tool(ToolWriteRequest(label="A"))
    b = inventory.create_tool(ToolWriteRequest(label="B"))
    inventory.borrow_tool(b.id, "Alice")

    assert [t.id for t in inventory.list_tools(is_borrowed=True)] == [b.id]
    assert [t.id for t in inventory.list_tools(is_borrowed=False)] == [a.id]
    assert len(inventory.list_tools()) == 2


def test_drill_cordless_scenario(inventory, backend):
    drill = inventory.create_tool(ToolWriteRequest(label="Drill", notes="cordless"))
    assert backend.search_text("cordless") == [drill.id]
    assert [t.id for t in inventory.list_tools(q="cordless")] == [drill.id]

    inventory.update_tool(drill.id, ToolWriteRequest(notes="battery"))
    assert backend.search_text("cordless") == []
    assert inventory.list_tools(q="cordless") == []


def test_search_combines_with_location_filter(inventory):
    garage = _location(inventory, "Garage")
    attic = _location(inventory, "Attic")
    in_garage = inventory.create_tool(ToolWriteRequest(label="Saw", location_id=garage.id))
    inventory.create_tool(ToolWriteRequest(label="Saw", location_id=attic.id))

    result = inventory.list_tools(q="saw", location_id=garage.id)
    assert [t.id for t in result] == [in_garage.id]
    assert inventory.list_tools(q="  ", location_id=attic.id)[0].location.name == "Attic"


def test_image_create_replace_scenario(inventory, assets):
    tool = inventory.create_tool(
        ToolWriteRequest(label="Clamp", image=ImageUpload(data=b"first", filename="clamp.png"))
    )
    old_name = assets.filename_of(tool.image_path)
    assert assets.serve(old_name) == b"first"

    updated = inventory.update_tool(
        tool.id, ToolWriteRequest(image=ImageUpload(data=b"second", filename="clamp2.jpg"))
    )
    new_name = assets.filename_of(updated.image_path)

    assert new_name != old_name
    assert assets.serve(new_name) == b"second"
    with pytest.raises(NotFoundError):
        assets.serve(old_name)


def test_windows_client_path_still_yields_servable_image(inventory, assets):
    tool = inventory.create_tool(
        ToolWriteRequest(label="Saw", image=ImageUpload(data=b"x", filename="C:\\pics.v2\\saw"))
    )
    name = assets.filename_of(tool.image_path)

    assert name.endswith(".jpg")
    assert assets.serve(name) == b"x"


def test_failed_replace_keeps_old_image(inventory, assets):
    tool = inventory.create_tool(
        ToolWriteRequest(label="Clamp", image=ImageUpload(data=b"first", filename="clamp.png"))
    )

    with pytest.raises(NotFoundError):
        inventory.update_tool(
            tool.id,
            ToolWriteRequest(location_id=999, image=ImageUpload(data=b"second", filename="c.png")),
        )

    assert inventory.get_tool(tool.id).image_path == tool.image_path
    assert assets.list_filenames() == [assets.filename_of(tool.image_path)]


def test_remove_image_flag(inventory, assets):
    tool = inventory.create_tool(
        ToolWriteRequest(label="Clamp", image=ImageUpload(data=b"first", filename="clamp.png"))
    )

    updated = inventory.update_tool(tool.id, ToolWriteRequest(remove_image=True))

    assert updated.image_path is None
    assert assets.list_filenames() == []


def test_delete_tool_removes_row_index_and_image(inventory, assets, backend):
    tool = inventory.create_tool(
        ToolWriteRequest(label="Grinder", image=ImageUpload(data=b"img", filename="g.jpg"))
    )

    inventory.delete_tool(tool.id)

    with pytest.raises(NotFoundError):
        inventory.get_tool(tool.id)
    assert backend.search_text("grinder") == []
    assert assets.list_filenames() == []
    with pytest.raises(NotFoundError):
        inventory.delete_tool(tool.id)


def test_tool_detail_has_location_path(inventory):
    garage = _location(inventory, "Garage")
    shelf = _location(inventory, "Shelf", garage)
    tool = inventory.create_tool(ToolWriteRequest(label="Hammer", location_id=shelf.id))

    detail = inventory.get_tool(tool.id)
    assert detail.location.id == shelf.id
    assert [l.name for l in detail.location_path] == ["Garage", "Shelf"]


def test_orphaned_assets_are_found_and_pruned(inventory, assets):
    tool = inventory.create_tool(
        ToolWriteRequest(label="Clamp", image=ImageUpload(data=b"kept", filename="k.png"))
    )
    orphan = assets.store(b"stray", "s.png")

    assert inventory.find_orphaned_assets() == [assets.filename_of(orphan)]
    assert inventory.prune_orphaned_assets() == [assets.filename_of(orphan)]
    assert assets.list_filenames() == [assets.filename_of(tool.image_path)]


def test_borrowed_invariant_holds_for_every_row(inventory, backend):
    for i in range(4):
        tool = inventory.create_tool(ToolWriteRequest(label=f"T{i}"))
        if i % 2:
            inventory.borrow_tool(tool.id, "Dana")
    inventory.return_tool(2)

    with backend.transaction() as db:
        for tool in crud.list_tools(db):
            if tool.is_borrowed:
                assert tool.borrowed_at is not None
            else:
                assert tool.borrowed_at is None and tool.borrowed_by is None
