import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Location",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255, unique=True)),
                ("description", models.TextField(blank=True)),
                (
                    "location_type",
                    models.CharField(
                        choices=[("bin", "Bin"), ("shelf", "Shelf"), ("rack", "Rack"), ("area", "Area"), ("zone", "Zone")],
                        default="bin",
                        max_length=16,
                    ),
                ),
                ("qr_code", models.CharField(blank=True, max_length=255)),
                ("assigned_stage_id", models.CharField(blank=True, db_index=True, max_length=64)),
                ("capacity", models.PositiveIntegerField(blank=True, null=True)),
                ("current_occupancy", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_by", models.CharField(blank=True, max_length=150)),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="children",
                        to="ops_core.location",
                    ),
                ),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="Workflow",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("entry_stage_id", models.CharField(blank=True, max_length=64)),
                ("created_by", models.CharField(blank=True, max_length=150)),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        migrations.CreateModel(
            name="Stage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage_id", models.CharField(max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("order", models.PositiveIntegerField(db_index=True)),
                (
                    "estimated_duration",
                    models.PositiveIntegerField(blank=True, help_text="Expected minutes spent in this stage.", null=True),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "assigned_locations",
                    models.ManyToManyField(blank=True, related_name="assigned_stages", to="ops_core.location"),
                ),
                (
                    "workflow",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stages",
                        to="ops_core.workflow",
                    ),
                ),
            ],
            options={"ordering": ["order", "id"]},
        ),
        migrations.AddConstraint(
            model_name="stage",
            constraint=models.UniqueConstraint(fields=("workflow", "stage_id"), name="stage_id_unique_per_workflow"),
        ),
        migrations.CreateModel(
            name="StageAction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action_id", models.CharField(max_length=64)),
                (
                    "action_type",
                    models.CharField(
                        choices=[
                            ("scan", "Scan"),
                            ("photo", "Photo"),
                            ("note", "Note"),
                            ("approval", "Approval"),
                            ("measurement", "Measurement"),
                            ("inspection", "Inspection"),
                        ],
                        max_length=16,
                    ),
                ),
                ("label", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("required", models.BooleanField(default=False)),
                ("config", models.JSONField(blank=True, default=dict)),
                (
                    "stage",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="actions",
                        to="ops_core.stage",
                    ),
                ),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.AddConstraint(
            model_name="stageaction",
            constraint=models.UniqueConstraint(fields=("stage", "action_id"), name="action_id_unique_per_stage"),
        ),
        migrations.CreateModel(
            name="Item",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_id", models.CharField(max_length=128, unique=True)),
                ("current_stage_id", models.CharField(db_index=True, max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("paused", "Paused"), ("completed", "Completed")],
                        db_index=True,
                        default="active",
                        max_length=16,
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("qr_code", models.CharField(blank=True, max_length=255)),
                ("assigned_to", models.CharField(blank=True, db_index=True, max_length=150)),
                ("is_defective", models.BooleanField(db_index=True, default=False)),
                ("defect_notes", models.TextField(blank=True)),
                ("flagged_by", models.CharField(blank=True, max_length=150)),
                ("flag_notes", models.TextField(blank=True)),
                ("flagged_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "current_location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="items",
                        to="ops_core.location",
                    ),
                ),
                (
                    "workflow",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items",
                        to="ops_core.workflow",
                    ),
                ),
            ],
            options={"ordering": ["-started_at", "-id"]},
        ),
        migrations.CreateModel(
            name="ItemHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage_id", models.CharField(max_length=64)),
                ("stage_name", models.CharField(max_length=255)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("started", "Started"),
                            ("completed", "Completed"),
                            ("paused", "Paused"),
                            ("resumed", "Resumed"),
                            ("stage_entered", "Stage entered"),
                            ("location_changed", "Location changed"),
                        ],
                        max_length=32,
                    ),
                ),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("user_id", models.CharField(blank=True, max_length=150)),
                ("notes", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="ops_core.item",
                    ),
                ),
            ],
            options={"ordering": ["timestamp", "id"], "verbose_name_plural": "item history"},
        ),
        migrations.CreateModel(
            name="CompletedItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_id", models.CharField(max_length=128, unique=True)),
                ("workflow_name", models.CharField(blank=True, max_length=255)),
                ("final_stage_id", models.CharField(max_length=64)),
                ("final_stage_name", models.CharField(max_length=255)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("started_at", models.DateTimeField()),
                ("completed_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("assigned_to", models.CharField(blank=True, max_length=150)),
                ("qr_code", models.CharField(blank=True, max_length=255)),
                ("completion_notes", models.TextField(blank=True)),
                ("completed_by", models.CharField(blank=True, max_length=150)),
                ("is_defective", models.BooleanField(default=False)),
                (
                    "final_location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="completed_items",
                        to="ops_core.location",
                    ),
                ),
                (
                    "workflow",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="completed_items",
                        to="ops_core.workflow",
                    ),
                ),
            ],
            options={"ordering": ["-completed_at", "-id"]},
        ),
        migrations.CreateModel(
            name="CompletedItemHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_id", models.CharField(db_index=True, max_length=128)),
                ("stage_id", models.CharField(max_length=64)),
                ("stage_name", models.CharField(max_length=255)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("started", "Started"),
                            ("completed", "Completed"),
                            ("paused", "Paused"),
                            ("resumed", "Resumed"),
                            ("stage_entered", "Stage entered"),
                            ("location_changed", "Location changed"),
                        ],
                        max_length=32,
                    ),
                ),
                ("timestamp", models.DateTimeField(db_index=True)),
                ("user_id", models.CharField(blank=True, max_length=150)),
                ("notes", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
            ],
            options={"ordering": ["timestamp", "id"], "verbose_name_plural": "completed item history"},
        ),
        migrations.CreateModel(
            name="LocationHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("item_id", models.CharField(db_index=True, max_length=128)),
                ("moved_by", models.CharField(blank=True, max_length=150)),
                ("moved_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("stage_id", models.CharField(blank=True, max_length=64)),
                ("notes", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "from_location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="moves_out",
                        to="ops_core.location",
                    ),
                ),
                (
                    "to_location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="moves_in",
                        to="ops_core.location",
                    ),
                ),
            ],
            options={"ordering": ["-moved_at", "-id"], "verbose_name_plural": "location history"},
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user_id", models.CharField(db_index=True, max_length=150)),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("item_assigned", "Item assigned"),
                            ("item_completed", "Item completed"),
                            ("item_defective", "Item defective"),
                            ("item_flagged", "Item flagged"),
                            ("stage_completed", "Stage completed"),
                            ("system_alert", "System alert"),
                        ],
                        max_length=32,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("item_id", models.CharField(blank=True, max_length=128)),
                ("stage_id", models.CharField(blank=True, max_length=64)),
                ("sender_id", models.CharField(blank=True, max_length=150)),
                ("is_read", models.BooleanField(db_index=True, default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                (
                    "priority",
                    models.CharField(
                        choices=[("low", "Low"), ("medium", "Medium"), ("high", "High"), ("urgent", "Urgent")],
                        default="medium",
                        max_length=16,
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "workflow",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notifications",
                        to="ops_core.workflow",
                    ),
                ),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(blank=True, db_index=True, max_length=150)),
                ("action", models.CharField(db_index=True, max_length=64)),
                (
                    "entity_type",
                    models.CharField(
                        choices=[
                            ("item", "Item"),
                            ("workflow", "Workflow"),
                            ("location", "Location"),
                            ("notification", "Notification"),
                        ],
                        max_length=16,
                    ),
                ),
                ("entity_id", models.CharField(max_length=128)),
                ("description", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={"ordering": ["-timestamp", "-id"]},
        ),
        migrations.CreateModel(
            name="OutboxEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("event_type", models.CharField(db_index=True, max_length=64)),
                ("payload", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("delivered", "Delivered"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={"ordering": ["id"]},
        ),
    ]
