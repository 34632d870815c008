import base64
import binascii
import json
import logging

import dash
from dash import html, dcc
from dash.dependencies import Output, Input, State
from dash_extensions.enrich import DashProxy, TriggerTransform, MultiplexerTransform
from flask import jsonify, request

from graph_editor import config
from graph_editor.errors import (
    GraphEditorError,
    IOFailureError,
    LoadInProgressError,
    MalformedDocumentError,
)
from graph_editor.render import apply_render_event, build_info_dicts, to_render_data
from graph_editor.serialization import dumps, to_document
from graph_editor.session import EditorSession
from graph_editor.views import expenses_only, monthly_expense_summary, summary_total

logger = logging.getLogger(__name__)

# ---------- STYLES ----------

button_style = {
    "backgroundColor": "#2196F3",
    "color": "white",
    "border": "none",
    "padding": "6px 10px",
    "marginBottom": "8px",
    "borderRadius": "4px",
    "cursor": "pointer",
    "fontSize": "12px",
    "width": "100%",
}
danger_button_style = {**button_style, "backgroundColor": "#f44336"}
save_button_style = {**button_style, "backgroundColor": "#4CAF50"}
new_button_style = {**button_style, "backgroundColor": "#FF5722"}
lock_button_style = {**button_style, "backgroundColor": "#009688"}

input_style = {
    "width": "100%",
    "padding": "4px 6px",
    "borderRadius": "3px",
    "border": "1px solid #555",
    "fontSize": "11px",
    "marginBottom": "8px",
    "boxSizing": "border-box",
}

upload_style = {
    **button_style,
    "display": "block",
    "textAlign": "center",
    "boxSizing": "border-box",
}

section_style = {
    "marginBottom": "15px",
    "borderBottom": "1px solid #444",
    "paddingBottom": "10px",
}

sidebar_style = {
    "position": "absolute",
    "top": "20px",
    "left": "20px",
    "width": "300px",
    "maxHeight": "92vh",
    "overflowY": "auto",
    "zIndex": 1000,
    "background": "rgba(0, 0, 0, 0.9)",
    "padding": "15px",
    "borderRadius": "8px",
    "color": "white",
    "fontFamily": "Arial, sans-serif",
}

box_style = {
    "position": "absolute",
    "top": "20px",
    "right": "20px",
    "width": "260px",
    "padding": "15px",
    "borderRadius": "8px",
    "background": "rgba(0, 0, 0, 0.9)",
    "color": "white",
    "fontFamily": "Arial, sans-serif",
    "fontSize": "12px",
    "zIndex": 1000,
}
summary_box_style = {**box_style, "top": "auto", "bottom": "20px"}


def _options(values):
    return [{"label": v, "value": v} for v in values]


def _link_value(source, target):
    return json.dumps([source, target])


def _notice(title, text):
    return html.Div([html.H4(title), html.P(text)])


def _decode_upload(contents):
    # dcc.Upload hands over "data:<mime>;base64,<payload>"
    _, _, encoded = (contents or "").partition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedDocumentError(f"Unreadable upload: {e}") from e


def _section(title, children):
    return html.Div([html.H4(title, style={"margin": "0 0 8px 0", "fontSize": "14px", "color": "#ccc"})] + children,
                    style=section_style)


# ---------- LAYOUT ----------

def build_layout(session):
    categories = list(session.store.categories)
    node_options = _node_options(session)
    return html.Div([
        html.Div([
            html.H3("Graph Controls", style={"margin": "0 0 15px 0", "fontSize": "16px"}),

            _section("Data Loading", [
                dcc.Upload(id="upload-graph", children=html.Div("Load Custom JSON"),
                           accept=".json", style=upload_style),
                html.Button("New Graph", id="new-graph-btn", n_clicks=0, style=new_button_style),
                html.Button("Save Graph Data", id="save-btn", n_clicks=0, style=save_button_style),
                dcc.Upload(id="upload-positions", children=html.Div("Load Node Positions"),
                           accept=".json", style={**upload_style, "backgroundColor": "#9C27B0"}),
                html.Button("Lock Node Positions", id="lock-btn", n_clicks=0, style=lock_button_style),
                dcc.Checklist(id="expenses-only", options=[{"label": " Show only expenses", "value": "on"}],
                              value=[], style={"fontSize": "12px"}),
                dcc.Download(id="download-graph"),
            ]),

            _section("Node Management", [
                dcc.Input(id="new-node-id", type="text", placeholder="Enter New Node ID", style=input_style),
                dcc.Input(id="new-node-group", type="number", value=config.DEFAULT_GROUP,
                          placeholder="Group", style=input_style),
                dcc.Dropdown(id="new-node-category", options=_options(categories),
                             value=config.DEFAULT_CATEGORY, clearable=False, style={"color": "black"}),
                dcc.Input(id="new-node-price", type="number", placeholder="Price", style=input_style),
                dcc.Dropdown(id="new-node-month", options=_options(config.MONTHS),
                             placeholder="Select Month", style={"color": "black"}),
                dcc.Dropdown(id="new-node-energy", options=_options(config.ENERGY_LEVELS),
                             placeholder="Select Energy Level", style={"color": "black"}),
                dcc.Dropdown(id="new-node-time", options=_options(config.TIME_OPTIONS),
                             placeholder="Select Time", style={"color": "black"}),
                html.Button("Add Node", id="add-node-btn", n_clicks=0, style=button_style),
                dcc.Dropdown(id="delete-node-select", options=node_options, placeholder="Select Node to Delete",
                             style={"color": "black"}),
                html.Button("Delete Selected Node", id="delete-node-btn", n_clicks=0, style=danger_button_style),
            ]),

            _section("Link Management", [
                dcc.Dropdown(id="link-source", options=node_options, placeholder="Select Source Node", style={"color": "black"}),
                dcc.Dropdown(id="link-target", options=node_options, placeholder="Select Target Node", style={"color": "black"}),
                html.Button("Add Link", id="add-link-btn", n_clicks=0, style=save_button_style),
            ]),

            _section("Node Customization", [
                dcc.Dropdown(id="edit-node-select", options=node_options, placeholder="Select Node to Customize",
                             style={"color": "black"}),
                dcc.Input(id="edit-node-color", type="text", placeholder="#RRGGBB", style=input_style),
                dcc.Slider(id="edit-node-text-size", min=1, max=20, step=1, value=config.DEFAULT_TEXT_SIZE,
                           marks=None, tooltip={"placement": "bottom"}),
                dcc.Dropdown(id="edit-node-category", options=_options(categories),
                             placeholder="Category", style={"color": "black"}),
                dcc.Input(id="edit-node-price", type="number", placeholder="Price", style=input_style),
                dcc.Dropdown(id="edit-node-month", options=_options(config.MONTHS),
                             placeholder="Select Month", style={"color": "black"}),
                dcc.Dropdown(id="edit-node-energy", options=_options(config.ENERGY_LEVELS),
                             placeholder="Select Energy Level", style={"color": "black"}),
                dcc.Dropdown(id="edit-node-time", options=_options(config.TIME_OPTIONS),
                             placeholder="Select Time", style={"color": "black"}),
                html.Button("Apply Node Changes", id="apply-node-btn", n_clicks=0, style=button_style),
            ]),

            _section("Link Customization", [
                dcc.Dropdown(id="edit-link-select", options=_link_options(session), placeholder="Select Link to Customize",
                             style={"color": "black"}),
                dcc.Input(id="edit-link-color", type="text", placeholder="#RRGGBB", style=input_style),
                dcc.Slider(id="edit-link-thickness", min=0.1, max=5, step=0.1,
                           value=config.DEFAULT_LINK_THICKNESS, marks=None, tooltip={"placement": "bottom"}),
                html.Button("Apply Link Changes", id="apply-link-btn", n_clicks=0, style=button_style),
            ]),

            _section("Categories", [
                dcc.Input(id="new-category-key", type="text", placeholder="Category name", style=input_style),
                dcc.Input(id="new-category-color", type="text", placeholder="#RRGGBB", style=input_style),
                html.Button("Add Category", id="add-category-btn", n_clicks=0, style=button_style),
            ]),
        ], style=sidebar_style),

        html.Div(id="info-box", style=box_style),
        html.Div(summary_panel(session), id="summary-box", style=summary_box_style),

        html.Div(id="3d-graph", style={
            "position": "absolute",
            "top": "0px",
            "left": "0px",
            "width": "100vw",
            "height": "100vh",
            "zIndex": "0",
            "overflow": "hidden",
        }),

        html.Div(id="graph-action", style={"display": "none"}),
        dcc.Store(id="graph-data-store", data=graph_payload(session, False)),
        dcc.Store(id="render-event-store"),
    ], style={"position": "relative", "height": "100vh", "width": "100vw", "margin": 0})


# ---------- VIEW HELPERS ----------

def graph_payload(session, only_expenses):
    view = expenses_only(session.store) if only_expenses else session.store.snapshot()
    return json.dumps({
        "graph": to_render_data(view, session.store.categories, session.positions.momentary_pins),
        "locked": session.positions.locked,
    })


def summary_panel(session):
    summary = monthly_expense_summary(session.store)
    if not summary:
        return None
    rows = [html.Div(f"{month}: ${total:.2f}") for month, total in summary.items()]
    return html.Div([html.H4("Monthly Expense Summary")] + rows + [
        html.Hr(),
        html.Strong(f"Total: ${summary_total(summary):.2f}"),
    ])


def node_info_panel(session, node_id):
    snap = session.store.snapshot()
    node = snap.get_node(node_id)
    node_info, _ = build_info_dicts(snap)
    info = node_info[node_id]
    details = [html.P(f"Category: {node.category}"), html.P(f"Color: {node.color}")]
    if node.price:
        details.append(html.P(f"Price: {node.price:.2f}"))
    for key in ("month", "energy", "time"):
        if getattr(node, key):
            details.append(html.P(f"{key.capitalize()}: {getattr(node, key)}"))
    return html.Div([html.H4(f"Selected Node: {node.id}")] + details + [
        html.Strong(f"Outgoing Links ({len(info['outgoing'])}):"),
        html.Ul([html.Li(f"{u} → {v} (value: {w})") for u, v, w in info["outgoing"]]),
        html.Strong(f"Incoming Links ({len(info['incoming'])}):"),
        html.Ul([html.Li(f"{u} → {v} (value: {w})") for u, v, w in info["incoming"]]),
    ])


def _node_options(session):
    return _options(session.store.node_ids())


def _link_options(session):
    return [
        {"label": f"{link.source} - {link.target}", "value": _link_value(link.source, link.target)}
        for link in session.store.links()
    ]


def _node_patch(session, node_id, color, text_size, category, price, month, energy, time):
    node = session.store.get_node(node_id)
    patch = {
        "price": price,
        "month": month or "",
        "energy": energy or "",
        "time": time or "",
    }
    if text_size is not None:
        patch["textSize"] = text_size
    if category:
        patch["category"] = category
    # an untouched color follows a category change
    category_changed = category and category != node.category
    if color and not (category_changed and color.upper() == node.color):
        patch["color"] = color
    return patch


# ---------- HTTP ROUTES ----------

def register_routes(server, session):
    @server.route("/nodes", methods=["GET"])
    def get_nodes():
        return jsonify(to_document(session.store))

    @server.route("/save", methods=["POST"])
    @server.route("/save-nodes", methods=["POST"])
    def save_nodes():
        payload = request.get_json(force=True, silent=True)
        if payload is None:
            return jsonify({"error": "Invalid JSON data."}), 400
        try:
            session.replace_and_save(payload)
        except MalformedDocumentError as e:
            return jsonify({"error": str(e)}), 400
        except LoadInProgressError as e:
            return jsonify({"error": str(e)}), 409
        except IOFailureError as e:
            server.logger.error("Error writing to file: %s", e)
            return jsonify({"error": "Error saving positions."}), 500
        server.logger.info("Positions saved successfully!")
        return jsonify({"message": "Positions saved successfully."})


# ---------- CALLBACKS ----------

def register_callbacks(app, session):

    @app.callback(
        Output("graph-data-store", "data"),
        Output("info-box", "children"),
        Output("summary-box", "children"),
        Output("delete-node-select", "options"),
        Output("link-source", "options"),
        Output("link-target", "options"),
        Output("edit-node-select", "options"),
        Output("edit-link-select", "options"),
        Output("new-node-category", "options"),
        Output("edit-node-category", "options"),
        Output("lock-btn", "children"),
        Output("download-graph", "data"),
        Output("edit-node-select", "value"),
        Input("add-node-btn", "n_clicks"),
        Input("delete-node-btn", "n_clicks"),
        Input("add-link-btn", "n_clicks"),
        Input("apply-node-btn", "n_clicks"),
        Input("apply-link-btn", "n_clicks"),
        Input("new-graph-btn", "n_clicks"),
        Input("save-btn", "n_clicks"),
        Input("lock-btn", "n_clicks"),
        Input("add-category-btn", "n_clicks"),
        Input("upload-graph", "contents"),
        Input("upload-positions", "contents"),
        Input("expenses-only", "value"),
        Input("render-event-store", "data"),
        State("new-node-id", "value"),
        State("new-node-group", "value"),
        State("new-node-category", "value"),
        State("new-node-price", "value"),
        State("new-node-month", "value"),
        State("new-node-energy", "value"),
        State("new-node-time", "value"),
        State("delete-node-select", "value"),
        State("link-source", "value"),
        State("link-target", "value"),
        State("edit-node-select", "value"),
        State("edit-node-color", "value"),
        State("edit-node-text-size", "value"),
        State("edit-node-category", "value"),
        State("edit-node-price", "value"),
        State("edit-node-month", "value"),
        State("edit-node-energy", "value"),
        State("edit-node-time", "value"),
        State("edit-link-select", "value"),
        State("edit-link-color", "value"),
        State("edit-link-thickness", "value"),
        State("new-category-key", "value"),
        State("new-category-color", "value"),
        prevent_initial_call=True
    )
    def unified_callback(add_node, delete_node, add_link, apply_node, apply_link, new_graph, save, lock,
                         add_category, graph_upload, positions_upload, only_expenses, render_event,
                         new_id, new_group, new_category, new_price, new_month, new_energy, new_time,
                         delete_id, link_source, link_target,
                         edit_id, edit_color, edit_text_size, edit_category, edit_price, edit_month,
                         edit_energy, edit_time,
                         edit_link, edit_link_color, edit_link_thickness,
                         category_key, category_color):

        triggered = dash.callback_context.triggered
        if not triggered:
            return (dash.no_update,) * 13
        trigger = triggered[0]["prop_id"].split(".")[0]

        if trigger == "render-event-store":
            # drags and simulation ticks only write positions back; re-pushing
            # the graph here would restart the simulation
            try:
                result = apply_render_event(session.positions, render_event)
            except GraphEditorError as e:
                logger.warning("Renderer event failed: %s", e)
                return (dash.no_update,) * 13
            if result and result["type"] == "click":
                return (dash.no_update, node_info_panel(session, result["id"])) + (dash.no_update,) * 10 + (result["id"],)
            return (dash.no_update,) * 13

        info = dash.no_update
        download = dash.no_update
        try:
            if trigger == "add-node-btn":
                attrs = {"category": new_category or config.DEFAULT_CATEGORY}
                if new_group is not None:
                    attrs["group"] = new_group
                if new_price is not None:
                    attrs["price"] = new_price
                attrs.update({"month": new_month or "", "energy": new_energy or "", "time": new_time or ""})
                node = session.store.add_node((new_id or "").strip(), attrs)
                info = _notice("Node Added", f"{node.id} ({node.category})")

            elif trigger == "delete-node-btn":
                if not delete_id:
                    info = _notice("Delete Node", "Please select a node to delete")
                else:
                    session.store.delete_node(delete_id)
                    session.positions.forget(delete_id)
                    info = _notice("Node Deleted", delete_id)

            elif trigger == "add-link-btn":
                if session.store.add_link(link_source, link_target):
                    info = _notice("Link Added", f"{link_source} → {link_target}")
                else:
                    info = _notice("Link Not Added", "Pick two different nodes that are not linked yet")

            elif trigger == "apply-node-btn":
                if edit_id:
                    patch = _node_patch(session, edit_id, edit_color, edit_text_size, edit_category,
                                        edit_price, edit_month, edit_energy, edit_time)
                    session.store.update_node_attr(edit_id, patch)
                    info = node_info_panel(session, edit_id)

            elif trigger == "apply-link-btn":
                if edit_link:
                    source, target = json.loads(edit_link)
                    patch = {"thickness": edit_link_thickness}
                    if edit_link_color:
                        patch["color"] = edit_link_color
                    link = session.store.update_link_attr(source, target, patch)
                    info = _notice("Link Updated", f"{link.source} → {link.target}")

            elif trigger == "new-graph-btn":
                session.new_graph()
                info = _notice("New Graph", "Started with an empty graph")

            elif trigger == "save-btn":
                try:
                    session.save()
                    info = _notice("Graph Saved", session.document_file.path)
                except IOFailureError as e:
                    info = _notice("Save Failed", str(e))
                download = dict(content=dumps(session.store), filename="graphData.json")

            elif trigger == "lock-btn":
                session.positions.toggle()

            elif trigger == "add-category-btn":
                key = (category_key or "").strip()
                if key in session.store.categories:
                    session.store.set_category_color(key, category_color)
                    info = _notice("Category Updated", key)
                else:
                    session.store.add_category(key, category_color)
                    info = _notice("Category Added", key)

            elif trigger == "upload-graph" and graph_upload:
                store = session.load(_decode_upload(graph_upload))
                info = _notice("Graph Loaded", f"{len(store)} nodes, {store.link_count} links")

            elif trigger == "upload-positions" and positions_upload:
                applied = session.load_positions(_decode_upload(positions_upload))
                info = _notice("Positions Loaded", f"{applied} node(s) moved")

        except GraphEditorError as e:
            logger.warning("%s failed: %s", trigger, e)
            info = _notice("Error", str(e))

        node_options = _node_options(session)
        category_options = _options(list(session.store.categories))
        lock_label = "Unlock Node Positions" if session.positions.locked else "Lock Node Positions"
        return (
            graph_payload(session, "on" in (only_expenses or [])),
            info,
            summary_panel(session),
            node_options, node_options, node_options, node_options,
            _link_options(session),
            category_options, category_options,
            lock_label,
            download,
            dash.no_update,
        )

    @app.callback(
        Output("edit-node-color", "value"),
        Output("edit-node-text-size", "value"),
        Output("edit-node-category", "value"),
        Output("edit-node-price", "value"),
        Output("edit-node-month", "value"),
        Output("edit-node-energy", "value"),
        Output("edit-node-time", "value"),
        Input("edit-node-select", "value"),
        prevent_initial_call=True
    )
    def fill_node_form(node_id):
        if not node_id or node_id not in session.store:
            return (dash.no_update,) * 7
        node = session.store.get_node(node_id)
        return (node.color, node.textSize, node.category, node.price,
                node.month or None, node.energy or None, node.time or None)

    @app.callback(
        Output("edit-link-color", "value"),
        Output("edit-link-thickness", "value"),
        Input("edit-link-select", "value"),
        prevent_initial_call=True
    )
    def fill_link_form(value):
        if not value:
            return dash.no_update, dash.no_update
        source, target = json.loads(value)
        if not session.store.has_link(source, target):
            return dash.no_update, dash.no_update
        link = session.store.get_link(source, target)
        return link.color, link.thickness

    app.clientside_callback(
        """
        function(payloadJson) {
            const payload = JSON.parse(payloadJson || '{"graph": {"nodes": [], "links": []}, "locked": false}');
            const graphData = payload.graph;
            window.fgLocked = payload.locked;

            const post = (event) => {
                event.stamp = Date.now();
                window.dash_clientside.set_props("render-event-store", {data: event});
            };

            if (!window.fgInstance) {
                window.pendingGraphData = graphData;
                if (window.fgMounting) return '';
                window.fgMounting = true;
                const interval = setInterval(() => {
                    if (!window.ForceGraph3D || !window.THREE || !window.SpriteText) return;
                    clearInterval(interval);
                    const graphContainer = document.getElementById("3d-graph");
                    window.momentaryPins = new Set();

                    const fg = ForceGraph3D()(graphContainer)
                        .graphData(window.pendingGraphData || graphData)
                        .backgroundColor('%s')
                        .nodeLabel('name')
                        .nodeThreeObject(node => {
                            const sprite = new SpriteText(node.name || node.id);
                            sprite.material.depthWrite = false;
                            sprite.color = node.id === window.fgSelected ? '%s' : node.color;
                            sprite.textHeight = node.id === window.fgSelected ? node.textSize + 2 : node.textSize;
                            return sprite;
                        })
                        .linkWidth(link => link.thickness || 1)
                        .linkColor(link => link.color || '%s')
                        .linkDirectionalParticles(2)
                        .linkDirectionalParticleWidth(2)
                        .linkDirectionalParticleSpeed(0.006)
                        .onNodeClick(node => {
                            window.fgSelected = node.id;
                            fg.refresh();
                            post({type: 'click', id: node.id});
                        })
                        .onNodeDragEnd(node => {
                            node.fx = node.x;
                            node.fy = node.y;
                            node.fz = node.z;
                            if (!window.fgLocked) {
                                window.momentaryPins.add(node.id);
                            }
                            post({type: 'dragEnd', id: node.id, x: node.x, y: node.y, z: node.z});
                        })
                        .onEngineTick(() => {
                            if (!window.momentaryPins.size) return;
                            fg.graphData().nodes.forEach(n => {
                                if (window.momentaryPins.has(n.id) && !window.fgLocked) {
                                    delete n.fx;
                                    delete n.fy;
                                    delete n.fz;
                                }
                            });
                            window.momentaryPins.clear();
                        })
                        .onEngineStop(() => {
                            const positions = {};
                            fg.graphData().nodes.forEach(n => {
                                positions[n.id] = {x: n.x, y: n.y, z: n.z};
                            });
                            post({type: 'tick', positions: positions});
                        });

                    graphContainer.addEventListener("dblclick", function() {
                        fg.cameraPosition({ x: 0, y: 0, z: 500 }, { x: 0, y: 0, z: 0 }, 1000);
                    });
                    window.fgInstance = fg;
                }, 100);
                return '';
            }

            window.fgInstance.graphData(graphData);
            window.fgInstance.d3ReheatSimulation();
            return 'refresh';
        }
        """ % (config.BACKGROUND_COLOR, config.SELECTED_NODE_COLOR, config.DEFAULT_LINK_COLOR),
        Output("graph-action", "children"),
        Input("graph-data-store", "data")
    )


# ---------- APP ----------

def create_app(session=None):
    session = session or EditorSession()
    app = DashProxy(__name__,
                    external_scripts=config.EXTERNAL_SCRIPTS,
                    transforms=[TriggerTransform(), MultiplexerTransform()])
    app.title = "3D Graph Editor"
    app.layout = build_layout(session)
    register_callbacks(app, session)
    register_routes(app.server, session)
    return app


def main():
    logging.basicConfig(level=config.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    session = EditorSession()
    session.open()
    app = create_app(session)
    logger.info("Server running at http://%s:%s/", config.HOST, config.PORT)
    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)


if __name__ == '__main__':
    main()
