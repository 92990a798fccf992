from snap_crop_tool.app import main

main()
